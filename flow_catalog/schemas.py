"""Pydantic schemas for the Flow Catalog models.

These schemas provide serialization/deserialization and validation for API
requests/responses, plus the read-side projections (breadcrumbs, flow detail,
diagram export, CRUD matrix, CSV import result).
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator
from enum import Enum

from .constants import (
    DEFAULT_LANE_HEIGHT, HEX_COLOR_PATTERN, MAX_LANE_HEIGHT, MIN_LANE_HEIGHT,
    ROLE_NAME_MAX_LENGTH, TABLE_NAME_PATTERN
)


class DataType(str, Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DATETIME = "DATETIME"
    JSON = "JSON"
    TEXT = "TEXT"
    UUID = "UUID"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DataType":
        """Lenient parse for free text (CSV cells); unknown values become STRING."""
        if not value:
            return cls.STRING
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.STRING


class RoleType(str, Enum):
    HUMAN = "HUMAN"
    SYSTEM = "SYSTEM"
    OTHER = "OTHER"


class FlowNodeType(str, Enum):
    START = "START"
    END = "END"
    PROCESS = "PROCESS"                        # Business block
    DECISION = "DECISION"                      # Business block
    SYSTEM_INTEGRATION = "SYSTEM_INTEGRATION"
    MANUAL_OPERATION = "MANUAL_OPERATION"
    DATA_STORE = "DATA_STORE"


class CrudOperation(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Node types allowed to decompose into a child flow
BUSINESS_BLOCK_TYPES = frozenset({FlowNodeType.PROCESS.value, FlowNodeType.DECISION.value})

# Display order of matrix columns
CRUD_OPERATION_ORDER = (
    CrudOperation.CREATE, CrudOperation.READ, CrudOperation.UPDATE, CrudOperation.DELETE
)


# Base schemas with common fields
class TimestampMixin(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Catalog table schemas
class CatalogTableBase(BaseModel):
    name: str = Field(..., pattern=TABLE_NAME_PATTERN)
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class CatalogTableCreate(CatalogTableBase):
    project_id: str


class CatalogTableUpdate(BaseModel):
    name: Optional[str] = Field(None, pattern=TABLE_NAME_PATTERN)
    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class CatalogTable(CatalogTableBase, TimestampMixin):
    id: str
    project_id: str

    model_config = ConfigDict(from_attributes=True)


# Catalog column schemas
class CatalogColumnBase(BaseModel):
    name: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    data_type: DataType = DataType.STRING
    description: Optional[str] = None
    is_primary_key: bool = False
    is_nullable: bool = True
    is_unique: bool = False
    default_value: Optional[str] = None
    foreign_key_table: Optional[str] = None
    foreign_key_column: Optional[str] = None


class CatalogColumnCreate(CatalogColumnBase):
    order: Optional[int] = Field(None, ge=0)  # Defaults to the current column count


class CatalogColumnUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    display_name: Optional[str] = None
    data_type: Optional[DataType] = None
    description: Optional[str] = None
    is_primary_key: Optional[bool] = None
    is_nullable: Optional[bool] = None
    is_unique: Optional[bool] = None
    default_value: Optional[str] = None
    foreign_key_table: Optional[str] = None
    foreign_key_column: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)


class CatalogColumn(CatalogColumnBase, TimestampMixin):
    id: str
    table_id: str
    is_foreign_key: bool
    order: int

    model_config = ConfigDict(from_attributes=True)


# Role schemas
class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=ROLE_NAME_MAX_LENGTH)
    type: RoleType = RoleType.HUMAN
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    lane_height: int = Field(DEFAULT_LANE_HEIGHT, ge=MIN_LANE_HEIGHT, le=MAX_LANE_HEIGHT)

    @field_validator('color')
    @classmethod
    def normalize_color(cls, v):
        return v.upper() if v else v


class RoleCreate(RoleBase):
    project_id: str
    order: Optional[int] = Field(None, ge=0)  # Defaults to the end of the list


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=ROLE_NAME_MAX_LENGTH)
    type: Optional[RoleType] = None
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    lane_height: Optional[int] = Field(None, ge=MIN_LANE_HEIGHT, le=MAX_LANE_HEIGHT)


class Role(RoleBase, TimestampMixin):
    id: str
    project_id: str
    order: int

    model_config = ConfigDict(from_attributes=True)


class RoleReorderRequest(BaseModel):
    """Full ordering of a project's roles; position in the list becomes ``order``."""
    role_ids: List[str] = Field(..., min_length=1)

    @field_validator('role_ids')
    @classmethod
    def validate_unique(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("role_ids must not contain duplicates")
        return v


# Business flow schemas
class BusinessFlowBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class BusinessFlowCreate(BusinessFlowBase):
    project_id: str


class ChildFlowCreate(BaseModel):
    """Create a child flow under a business-block node."""
    node_id: str
    name: Optional[str] = None  # Defaults to "<node label> detail"
    description: Optional[str] = None


class BusinessFlowUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class BusinessFlow(BusinessFlowBase, TimestampMixin):
    id: str
    project_id: str
    version: int = Field(..., ge=1)
    parent_id: Optional[str] = None
    depth: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True)


# Flow node schemas
class FlowNodeBase(BaseModel):
    type: FlowNodeType = FlowNodeType.PROCESS
    label: str = Field(..., min_length=1)
    description: Optional[str] = None
    position_x: float = 0
    position_y: float = 0
    role_id: Optional[str] = None


class FlowNodeCreate(FlowNodeBase):
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FlowNodeUpdate(BaseModel):
    type: Optional[FlowNodeType] = None
    label: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    role_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class FlowNode(FlowNodeBase, TimestampMixin):
    id: str
    flow_id: str
    child_flow_id: Optional[str] = None
    # ORM attribute is node_metadata; "metadata" is reserved on declarative models
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('node_metadata', 'metadata'),
    )

    model_config = ConfigDict(from_attributes=True)


# Flow edge schemas
class FlowEdgeBase(BaseModel):
    source_node_id: str
    target_node_id: str
    label: Optional[str] = None
    condition: Optional[str] = None


class FlowEdgeCreate(FlowEdgeBase):
    pass


class FlowEdgeUpdate(BaseModel):
    label: Optional[str] = None
    condition: Optional[str] = None


class FlowEdge(FlowEdgeBase, TimestampMixin):
    id: str
    flow_id: str

    model_config = ConfigDict(from_attributes=True)


# CRUD mapping schemas
class CrudMappingBase(BaseModel):
    column_id: str = Field(..., min_length=1)
    operation: CrudOperation
    role_id: str = Field(..., min_length=1)
    flow_id: Optional[str] = None
    flow_node_id: Optional[str] = None
    how: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None


class CrudMappingCreate(CrudMappingBase):
    pass


class CrudMappingUpdate(BaseModel):
    operation: Optional[CrudOperation] = None
    role_id: Optional[str] = Field(None, min_length=1)
    flow_id: Optional[str] = None
    flow_node_id: Optional[str] = None
    how: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None


class CrudMapping(CrudMappingBase, TimestampMixin):
    id: str

    model_config = ConfigDict(from_attributes=True)


# Projections
class Breadcrumb(BaseModel):
    id: str
    name: str
    depth: int = 0

    model_config = ConfigDict(from_attributes=True)


class FlowDetail(BusinessFlow):
    """A flow with everything a diagram renderer needs."""
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    breadcrumbs: List[Breadcrumb] = Field(default_factory=list)
    children: List[BusinessFlow] = Field(default_factory=list)


class DiagramExport(BaseModel):
    flow_id: str
    flow_name: str
    mermaid: str


class CrudMatrixCell(BaseModel):
    table_id: str
    operation: CrudOperation
    role_id: str
    text: str = ""
    mapping_ids: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """No recorded fact; says nothing about whether the operation is possible."""
        return not self.mapping_ids


class CrudMatrixRow(BaseModel):
    table_id: str
    table_name: str
    # role id -> operation -> cell; every role x operation pair is present
    cells: Dict[str, Dict[CrudOperation, CrudMatrixCell]] = Field(default_factory=dict)


class CrudMatrix(BaseModel):
    project_id: str
    operations: List[CrudOperation] = Field(default_factory=lambda: list(CRUD_OPERATION_ORDER))
    role_ids: List[str] = Field(default_factory=list)
    rows: List[CrudMatrixRow] = Field(default_factory=list)

    def cell(self, table_id: str, operation: CrudOperation, role_id: str) -> Optional[CrudMatrixCell]:
        for row in self.rows:
            if row.table_id == table_id:
                return row.cells.get(role_id, {}).get(CrudOperation(operation))
        return None


class CsvImportResult(BaseModel):
    success: bool
    tables_created: int = 0
    columns_created: int = 0
    errors: List[str] = Field(default_factory=list)


# Update forward references
FlowDetail.model_rebuild()
