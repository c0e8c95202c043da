"""
SQLAlchemy models for the Flow Catalog schema.

Catalog (tables/columns), roles, hierarchical business flows and the CRUD
traceability facts that bind them together. Every entity is created through a
``create`` factory that validates its invariants, and every mutation method
re-validates before changing state.

Cross-entity references are plain identifiers. Only a column's ``table_id``
is a real foreign key (a table owns its columns); everything else is a soft
reference that may dangle.
"""
import re
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint, func, inspect
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base

from .constants import (
    DEFAULT_LANE_HEIGHT, HEX_COLOR_PATTERN, MAX_LANE_HEIGHT, MIN_LANE_HEIGHT,
    ROLE_NAME_MAX_LENGTH, TABLE_NAME_PATTERN
)
from .exceptions import ValidationError
from .schemas import (
    BUSINESS_BLOCK_TYPES, CrudOperation, DataType, FlowNodeType, RoleType
)

Base = declarative_base()

_TABLE_NAME_RE = re.compile(TABLE_NAME_PATTERN)
_HEX_COLOR_RE = re.compile(HEX_COLOR_PATTERN)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_enum(enum_cls, value, field: str) -> str:
    """Return the stored string form of an enum value or raise ValidationError."""
    try:
        return enum_cls(value.upper() if isinstance(value, str) else value).value
    except (ValueError, AttributeError):
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {allowed}", field=field)


def _clean_optional(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(value: Optional[str], message: str, field: str) -> str:
    if not value or not value.strip():
        raise ValidationError(message, field=field)
    return value


# ============================================================================
# Mixins
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()


class EntityMixin(TimestampMixin):
    """Stable id assigned at creation; equality is identity-based."""
    id = Column(UUID(as_uuid=False), primary_key=True, default=new_id)

    def __eq__(self, other):
        if not isinstance(other, EntityMixin):
            return NotImplemented
        return self.id is not None and self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"

    @contextmanager
    def atomic_update(self):
        """Group several mutations so that a failing one leaves the entity as it was.

        Column values present when the block starts are restored if anything
        inside it raises; the exception propagates unchanged.
        """
        state = inspect(self)
        snapshot = {
            attr.key: state.dict[attr.key]
            for attr in state.mapper.column_attrs
            if attr.key in state.dict
        }
        try:
            yield self
        except Exception:
            for key, value in snapshot.items():
                setattr(self, key, value)
            raise


# ============================================================================
# Catalog
# ============================================================================

class CatalogTable(Base, EntityMixin):
    """A table in a project's data catalog. Owns its columns."""
    __tablename__ = 'catalog_table'

    project_id = Column(UUID(as_uuid=False), nullable=False)
    name = Column(String(255), nullable=False)
    display_name = Column(Text)
    description = Column(Text)
    tags = Column(JSONB, nullable=False, server_default='[]')

    __table_args__ = (
        UniqueConstraint('project_id', 'name', name='uq_catalog_table_project_name'),
        Index('idx_catalog_table_project', 'project_id'),
    )

    @staticmethod
    def _validate_name(name: str) -> str:
        _require(name, "Table name is required", "name")
        if not _TABLE_NAME_RE.match(name):
            raise ValidationError(
                "Table name must be lowercase alphanumeric with underscores", field="name"
            )
        return name

    @classmethod
    def create(
        cls,
        project_id: str,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        id: Optional[str] = None,
    ) -> "CatalogTable":
        _require(project_id, "Project ID is required", "project_id")
        now = utcnow()
        return cls(
            id=id or new_id(),
            project_id=project_id,
            name=cls._validate_name(name),
            display_name=display_name,
            description=description,
            tags=list(dict.fromkeys(tags or [])),
            created_at=now,
            updated_at=now,
        )

    def update_name(self, name: str) -> None:
        self.name = self._validate_name(name)
        self.touch()

    def update_display_name(self, display_name: Optional[str]) -> None:
        self.display_name = display_name
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = description
        self.touch()

    def add_tag(self, tag: str) -> None:
        current = list(self.tags or [])
        if tag not in current:
            # reassign so the JSONB change is tracked
            self.tags = current + [tag]
            self.touch()

    def remove_tag(self, tag: str) -> None:
        current = list(self.tags or [])
        if tag in current:
            self.tags = [t for t in current if t != tag]
            self.touch()

    def replace_tags(self, tags: Iterable[str]) -> None:
        self.tags = list(dict.fromkeys(tags))
        self.touch()


class CatalogColumn(Base, EntityMixin):
    """A column of a catalog table.

    Foreign-key metadata is an advisory (table name, column name) pair and is
    never resolved against the catalog, so it may point at tables that are not
    described yet.
    """
    __tablename__ = 'catalog_column'

    table_id = Column(UUID(as_uuid=False),
                      ForeignKey('catalog_table.id', ondelete='CASCADE'),
                      nullable=False)
    name = Column(String(255), nullable=False)
    display_name = Column(Text)
    data_type = Column(Text, nullable=False, default=DataType.STRING.value)
    description = Column(Text)
    is_primary_key = Column(Boolean, nullable=False, default=False)
    is_foreign_key = Column(Boolean, nullable=False, default=False)
    is_nullable = Column(Boolean, nullable=False, default=True)
    is_unique = Column(Boolean, nullable=False, default=False)
    default_value = Column(Text)
    foreign_key_table = Column(Text)
    foreign_key_column = Column(Text)
    order = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('table_id', 'name', name='uq_catalog_column_table_name'),
        CheckConstraint(
            "data_type IN ('STRING', 'INTEGER', 'FLOAT', 'BOOLEAN', 'DATE', "
            "'DATETIME', 'JSON', 'TEXT', 'UUID')",
            name='ck_catalog_column_data_type'
        ),
        CheckConstraint(
            "is_foreign_key = (foreign_key_table IS NOT NULL AND foreign_key_column IS NOT NULL)",
            name='ck_catalog_column_fk_pair'
        ),
        CheckConstraint('NOT (is_primary_key AND is_nullable)', name='ck_catalog_column_pk_not_null'),
        Index('idx_catalog_column_table', 'table_id'),
    )

    @staticmethod
    def _validate_foreign_key(table: Optional[str], column: Optional[str]) -> bool:
        if bool(table) != bool(column):
            raise ValidationError(
                "Both foreign key table and column must be provided or neither",
                field="foreign_key",
            )
        return bool(table)

    @classmethod
    def create(
        cls,
        table_id: str,
        name: str,
        display_name: Optional[str] = None,
        data_type=DataType.STRING,
        description: Optional[str] = None,
        is_primary_key: bool = False,
        is_foreign_key: Optional[bool] = None,
        is_nullable: bool = True,
        is_unique: bool = False,
        default_value: Optional[str] = None,
        foreign_key_table: Optional[str] = None,
        foreign_key_column: Optional[str] = None,
        order: int = 0,
        id: Optional[str] = None,
    ) -> "CatalogColumn":
        _require(table_id, "Table ID is required", "table_id")
        _require(name, "Column name is required", "name")
        foreign_key_table = foreign_key_table or None
        foreign_key_column = foreign_key_column or None
        has_reference = cls._validate_foreign_key(foreign_key_table, foreign_key_column)
        if is_foreign_key is not None and bool(is_foreign_key) != has_reference:
            raise ValidationError(
                "A foreign key column needs both a referenced table and column",
                field="is_foreign_key",
            )
        now = utcnow()
        return cls(
            id=id or new_id(),
            table_id=table_id,
            name=name,
            display_name=display_name,
            data_type=_coerce_enum(DataType, data_type, "data_type"),
            description=description,
            is_primary_key=bool(is_primary_key),
            is_foreign_key=has_reference,
            is_nullable=False if is_primary_key else bool(is_nullable),
            is_unique=bool(is_unique),
            default_value=default_value,
            foreign_key_table=foreign_key_table,
            foreign_key_column=foreign_key_column,
            order=order,
            created_at=now,
            updated_at=now,
        )

    def update_name(self, name: str) -> None:
        self.name = _require(name, "Column name is required", "name")
        self.touch()

    def update_display_name(self, display_name: Optional[str]) -> None:
        self.display_name = display_name
        self.touch()

    def update_data_type(self, data_type) -> None:
        self.data_type = _coerce_enum(DataType, data_type, "data_type")
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = description
        self.touch()

    def set_primary_key(self, is_primary_key: bool) -> None:
        self.is_primary_key = bool(is_primary_key)
        if is_primary_key:
            self.is_nullable = False
        self.touch()

    def set_nullable(self, is_nullable: bool) -> None:
        if is_nullable and self.is_primary_key:
            raise ValidationError("A primary key column cannot be nullable", field="is_nullable")
        self.is_nullable = bool(is_nullable)
        self.touch()

    def set_unique(self, is_unique: bool) -> None:
        self.is_unique = bool(is_unique)
        self.touch()

    def set_foreign_key(self, table: Optional[str], column: Optional[str]) -> None:
        table = table or None
        column = column or None
        self.is_foreign_key = self._validate_foreign_key(table, column)
        self.foreign_key_table = table
        self.foreign_key_column = column
        self.touch()

    def update_default_value(self, default_value: Optional[str]) -> None:
        self.default_value = default_value
        self.touch()

    def update_order(self, order: int) -> None:
        if order < 0:
            raise ValidationError("Column order must not be negative", field="order")
        self.order = order
        self.touch()


# ============================================================================
# Roles
# ============================================================================

class Role(Base, EntityMixin):
    """An actor (person, system or other) that owns a swimlane."""
    __tablename__ = 'role'

    project_id = Column(UUID(as_uuid=False), nullable=False)
    name = Column(String(ROLE_NAME_MAX_LENGTH), nullable=False)
    type = Column(Text, nullable=False)
    description = Column(Text)
    color = Column(String(7))
    order = Column(Integer, nullable=False, default=0)
    lane_height = Column(Integer, nullable=False, default=DEFAULT_LANE_HEIGHT)

    __table_args__ = (
        UniqueConstraint('project_id', 'name', name='uq_role_project_name'),
        CheckConstraint("type IN ('HUMAN', 'SYSTEM', 'OTHER')", name='ck_role_type'),
        CheckConstraint(
            f'lane_height BETWEEN {MIN_LANE_HEIGHT} AND {MAX_LANE_HEIGHT}',
            name='ck_role_lane_height'
        ),
        Index('idx_role_project_order', 'project_id', 'order'),
    )

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("Role name is required", field="name")
        if len(trimmed) > ROLE_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Role name must be at most {ROLE_NAME_MAX_LENGTH} characters", field="name"
            )
        return trimmed

    @staticmethod
    def _validate_color(color: Optional[str]) -> Optional[str]:
        if not color:
            return None
        if not _HEX_COLOR_RE.match(color):
            raise ValidationError("Color must be a valid hex color (e.g., #3B82F6)", field="color")
        return color.upper()

    @staticmethod
    def _validate_lane_height(lane_height: int) -> int:
        if isinstance(lane_height, bool) or not isinstance(lane_height, int):
            raise ValidationError("Lane height must be an integer", field="lane_height")
        if not MIN_LANE_HEIGHT <= lane_height <= MAX_LANE_HEIGHT:
            raise ValidationError(
                f"Lane height must be between {MIN_LANE_HEIGHT} and {MAX_LANE_HEIGHT}",
                field="lane_height",
            )
        return lane_height

    @classmethod
    def create(
        cls,
        project_id: str,
        name: str,
        type=RoleType.HUMAN,
        description: Optional[str] = None,
        color: Optional[str] = None,
        order: int = 0,
        lane_height: int = DEFAULT_LANE_HEIGHT,
        id: Optional[str] = None,
    ) -> "Role":
        _require(project_id, "Project ID is required", "project_id")
        if order < 0:
            raise ValidationError("Role order must not be negative", field="order")
        now = utcnow()
        return cls(
            id=id or new_id(),
            project_id=project_id,
            name=cls._validate_name(name),
            type=_coerce_enum(RoleType, type, "type"),
            description=_clean_optional(description),
            color=cls._validate_color(color),
            order=order,
            lane_height=cls._validate_lane_height(lane_height),
            created_at=now,
            updated_at=now,
        )

    def change_name(self, name: str) -> None:
        self.name = self._validate_name(name)
        self.touch()

    def change_type(self, type) -> None:
        self.type = _coerce_enum(RoleType, type, "type")
        self.touch()

    def change_description(self, description: Optional[str]) -> None:
        self.description = _clean_optional(description)
        self.touch()

    def change_color(self, color: Optional[str]) -> None:
        self.color = self._validate_color(color)
        self.touch()

    def change_lane_height(self, lane_height: int) -> None:
        self.lane_height = self._validate_lane_height(lane_height)
        self.touch()

    def change_order(self, order: int) -> None:
        if order < 0:
            raise ValidationError("Role order must not be negative", field="order")
        self.order = order
        self.touch()

    def is_human(self) -> bool:
        return self.type == RoleType.HUMAN.value

    def is_system(self) -> bool:
        return self.type == RoleType.SYSTEM.value


# ============================================================================
# Flow hierarchy
# ============================================================================

class BusinessFlow(Base, EntityMixin):
    """A named, versioned process diagram, optionally nested under a parent.

    ``version`` only moves on an explicit ``increment_version`` call; ordinary
    edits never bump it.
    """
    __tablename__ = 'business_flow'

    project_id = Column(UUID(as_uuid=False), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    version = Column(Integer, nullable=False, default=1)
    parent_id = Column(UUID(as_uuid=False))
    depth = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint('version >= 1', name='ck_business_flow_version'),
        CheckConstraint('(parent_id IS NULL) = (depth = 0)', name='ck_business_flow_root_depth'),
        Index('idx_business_flow_project', 'project_id'),
        Index('idx_business_flow_parent', 'parent_id'),
    )

    @staticmethod
    def _validate_placement(parent_id: Optional[str], depth: int) -> None:
        if parent_id is None and depth != 0:
            raise ValidationError("A root flow must have depth 0", field="depth")
        if parent_id is not None and depth < 1:
            raise ValidationError("A child flow must have depth of at least 1", field="depth")

    @classmethod
    def create(
        cls,
        project_id: str,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[str] = None,
        depth: Optional[int] = None,
        id: Optional[str] = None,
    ) -> "BusinessFlow":
        _require(project_id, "Project ID is required", "project_id")
        _require(name, "Business flow name is required", "name")
        parent_id = parent_id or None
        if depth is None:
            if parent_id is not None:
                raise ValidationError(
                    "A child flow needs its depth; use create_child_flow", field="depth"
                )
            depth = 0
        cls._validate_placement(parent_id, depth)
        now = utcnow()
        return cls(
            id=id or new_id(),
            project_id=project_id,
            name=name,
            description=description,
            version=1,
            parent_id=parent_id,
            depth=depth,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def create_child_flow(
        cls,
        parent: "BusinessFlow",
        name: str,
        description: Optional[str] = None,
        id: Optional[str] = None,
    ) -> "BusinessFlow":
        """New flow one level below ``parent``. Does not link it to any node."""
        return cls.create(
            project_id=parent.project_id,
            name=name,
            description=description,
            parent_id=parent.id,
            depth=parent.depth + 1,
            id=id,
        )

    @property
    def is_root_flow(self) -> bool:
        return self.parent_id is None

    @property
    def is_child_flow(self) -> bool:
        return self.parent_id is not None

    def update_name(self, name: str) -> None:
        self.name = _require(name, "Business flow name is required", "name")
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = description
        self.touch()

    def increment_version(self) -> None:
        self.version = (self.version or 1) + 1
        self.touch()

    def set_parent(self, parent_id: Optional[str], depth: int) -> None:
        parent_id = parent_id or None
        if parent_id is not None and parent_id == self.id:
            raise ValidationError("A flow cannot be its own parent", field="parent_id")
        self._validate_placement(parent_id, depth)
        self.parent_id = parent_id
        self.depth = depth
        self.touch()


class FlowNode(Base, EntityMixin):
    """A typed step within a flow.

    A business block (PROCESS or DECISION) may decompose into one child flow
    via ``child_flow_id``. The link is one-directional; nothing on the child
    flow points back at its owning node.
    """
    __tablename__ = 'flow_node'

    flow_id = Column(UUID(as_uuid=False), nullable=False)
    type = Column(Text, nullable=False, default=FlowNodeType.PROCESS.value)
    label = Column(Text, nullable=False)
    description = Column(Text)
    position_x = Column(Float, nullable=False, default=0)
    position_y = Column(Float, nullable=False, default=0)
    role_id = Column(UUID(as_uuid=False))
    child_flow_id = Column(UUID(as_uuid=False))
    node_metadata = Column('metadata', JSONB, nullable=False, server_default='{}')

    __table_args__ = (
        CheckConstraint(
            "type IN ('START', 'END', 'PROCESS', 'DECISION', 'SYSTEM_INTEGRATION', "
            "'MANUAL_OPERATION', 'DATA_STORE')",
            name='ck_flow_node_type'
        ),
        CheckConstraint(
            "child_flow_id IS NULL OR type IN ('PROCESS', 'DECISION')",
            name='ck_flow_node_child_flow_business_block'
        ),
        Index('idx_flow_node_flow', 'flow_id'),
        Index('idx_flow_node_child_flow', 'child_flow_id'),
    )

    @classmethod
    def create(
        cls,
        flow_id: str,
        label: str,
        type=FlowNodeType.PROCESS,
        description: Optional[str] = None,
        position_x: float = 0,
        position_y: float = 0,
        role_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> "FlowNode":
        _require(flow_id, "Flow ID is required", "flow_id")
        _require(label, "Node label is required", "label")
        now = utcnow()
        return cls(
            id=id or new_id(),
            flow_id=flow_id,
            type=_coerce_enum(FlowNodeType, type, "type"),
            label=label,
            description=description,
            position_x=position_x,
            position_y=position_y,
            role_id=role_id or None,
            child_flow_id=None,
            node_metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    @property
    def metadata_dict(self) -> Dict[str, Any]:
        """Copy of the node metadata."""
        return dict(self.node_metadata or {})

    @property
    def has_child_flow(self) -> bool:
        return self.child_flow_id is not None

    @property
    def is_business_block(self) -> bool:
        return self.type in BUSINESS_BLOCK_TYPES

    def update_label(self, label: str) -> None:
        self.label = _require(label, "Node label is required", "label")
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = description
        self.touch()

    def update_position(self, x: float, y: float) -> None:
        """Move the node without touching its role.

        Callers that move nodes across swimlanes go through
        ``swimlane.apply_position`` so ``role_id`` follows the position.
        """
        self.position_x = x
        self.position_y = y
        self.touch()

    def update_type(self, type) -> None:
        new_type = _coerce_enum(FlowNodeType, type, "type")
        if self.has_child_flow and new_type not in BUSINESS_BLOCK_TYPES:
            raise ValidationError(
                "Unlink the child flow before changing this node to a non-business-block type",
                field="type",
            )
        self.type = new_type
        self.touch()

    def assign_role(self, role_id: Optional[str]) -> None:
        self.role_id = role_id or None
        self.touch()

    def link_child_flow(self, child_flow_id: str) -> None:
        if not self.is_business_block:
            raise ValidationError(
                "Only PROCESS or DECISION nodes can have child flows", field="child_flow_id"
            )
        _require(child_flow_id, "Child flow ID is required", "child_flow_id")
        if self.child_flow_id == child_flow_id:
            return
        self.child_flow_id = child_flow_id
        self.touch()

    def unlink_child_flow(self) -> None:
        if self.child_flow_id is None:
            return
        self.child_flow_id = None
        self.touch()

    def update_metadata(self, metadata: Dict[str, Any]) -> None:
        self.node_metadata = dict(metadata or {})
        self.touch()


class FlowEdge(Base, EntityMixin):
    """Directed transition between two nodes of the same flow. Cycles are allowed."""
    __tablename__ = 'flow_edge'

    flow_id = Column(UUID(as_uuid=False), nullable=False)
    source_node_id = Column(UUID(as_uuid=False), nullable=False)
    target_node_id = Column(UUID(as_uuid=False), nullable=False)
    label = Column(Text)
    condition = Column(Text)

    __table_args__ = (
        Index('idx_flow_edge_flow', 'flow_id'),
    )

    @classmethod
    def create(
        cls,
        flow_id: str,
        source_node_id: str,
        target_node_id: str,
        label: Optional[str] = None,
        condition: Optional[str] = None,
        id: Optional[str] = None,
    ) -> "FlowEdge":
        _require(flow_id, "Flow ID is required", "flow_id")
        _require(source_node_id, "Source node ID is required", "source_node_id")
        _require(target_node_id, "Target node ID is required", "target_node_id")
        now = utcnow()
        return cls(
            id=id or new_id(),
            flow_id=flow_id,
            source_node_id=source_node_id,
            target_node_id=target_node_id,
            label=label or None,
            condition=condition or None,
            created_at=now,
            updated_at=now,
        )

    def validate_endpoints(self, source: Optional[FlowNode], target: Optional[FlowNode]) -> None:
        """Both endpoints must exist and belong to this edge's flow."""
        for node, node_id, field in (
            (source, self.source_node_id, "source_node_id"),
            (target, self.target_node_id, "target_node_id"),
        ):
            if node is None or node.id != node_id:
                raise ValidationError(f"Node '{node_id}' does not exist", field=field)
            if node.flow_id != self.flow_id:
                raise ValidationError(
                    f"Node '{node_id}' belongs to a different flow", field=field
                )

    def update_label(self, label: Optional[str]) -> None:
        self.label = label or None
        self.touch()

    def update_condition(self, condition: Optional[str]) -> None:
        self.condition = condition or None
        self.touch()


# ============================================================================
# Traceability
# ============================================================================

class CrudMapping(Base, EntityMixin):
    """One traceability fact.

    "Role R performs operation O on column C, optionally at step N of flow F,
    via ``how`` under ``condition``." Facts are not unique per
    (column, operation); each has its own identity.
    """
    __tablename__ = 'crud_mapping'

    column_id = Column(UUID(as_uuid=False), nullable=False)
    operation = Column(Text, nullable=False)
    role_id = Column(UUID(as_uuid=False), nullable=False)
    flow_id = Column(UUID(as_uuid=False))
    flow_node_id = Column(UUID(as_uuid=False))
    how = Column(Text)
    condition = Column(Text)
    description = Column(Text)

    __table_args__ = (
        CheckConstraint(
            "operation IN ('CREATE', 'READ', 'UPDATE', 'DELETE')",
            name='ck_crud_mapping_operation'
        ),
        Index('idx_crud_mapping_column', 'column_id'),
        Index('idx_crud_mapping_column_operation', 'column_id', 'operation'),
        Index('idx_crud_mapping_role', 'role_id'),
        Index('idx_crud_mapping_flow', 'flow_id'),
        Index('idx_crud_mapping_flow_node', 'flow_node_id'),
    )

    @classmethod
    def create(
        cls,
        column_id: str,
        operation,
        role_id: str,
        flow_id: Optional[str] = None,
        flow_node_id: Optional[str] = None,
        how: Optional[str] = None,
        condition: Optional[str] = None,
        description: Optional[str] = None,
        id: Optional[str] = None,
    ) -> "CrudMapping":
        _require(column_id, "Column ID is required", "column_id")
        _require(role_id, "Role ID is required", "role_id")
        now = utcnow()
        return cls(
            id=id or new_id(),
            column_id=column_id,
            operation=_coerce_enum(CrudOperation, operation, "operation"),
            role_id=role_id,
            flow_id=flow_id or None,
            flow_node_id=flow_node_id or None,
            how=how,
            condition=condition,
            description=description,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_linked_to_flow(self) -> bool:
        return self.flow_id is not None

    @property
    def is_linked_to_node(self) -> bool:
        return self.flow_node_id is not None

    def update_operation(self, operation) -> None:
        self.operation = _coerce_enum(CrudOperation, operation, "operation")
        self.touch()

    def update_role(self, role_id: str) -> None:
        self.role_id = _require(role_id, "Role ID is required", "role_id")
        self.touch()

    def link_to_flow(self, flow_id: Optional[str], flow_node_id: Optional[str]) -> None:
        self.flow_id = flow_id or None
        self.flow_node_id = flow_node_id or None
        self.touch()

    def update_how(self, how: Optional[str]) -> None:
        self.how = how
        self.touch()

    def update_condition(self, condition: Optional[str]) -> None:
        self.condition = condition
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = description
        self.touch()


# ============================================================================
# Helper Functions
# ============================================================================

def create_all_tables(engine):
    """Create all tables in the database"""
    Base.metadata.create_all(engine)


def drop_all_tables(engine):
    """Drop all tables from the database"""
    Base.metadata.drop_all(engine)
