"""Flow Catalog - data catalog, business flows and CRUD traceability between them."""

from .constants import (
    DATABASE_REQUIREMENTS,
    VERSION_COMPATIBILITY,
    EXTENSION_VERSIONS,
    MAX_FLOW_DEPTH,
)

from .exceptions import (
    DomainError,
    ValidationError,
    EntityNotFoundError,
    EntityAlreadyExistsError,
    UnauthorizedError,
    ForbiddenError,
)

from .values import Slug, Email

from .validators import (
    validate_postgresql_version_async,
    validate_postgresql_version_sync,
    validate_extensions_async,
    validate_extensions_sync,
    validate_database_compatibility_async,
    validate_database_compatibility_sync,
)

from .models import (
    Base,
    CatalogTable,
    CatalogColumn,
    Role,
    BusinessFlow,
    FlowNode,
    FlowEdge,
    CrudMapping,
    create_all_tables,
    drop_all_tables,
)

from .schemas import (
    # Enums
    DataType,
    RoleType,
    FlowNodeType,
    CrudOperation,
    BUSINESS_BLOCK_TYPES,
    CRUD_OPERATION_ORDER,

    # Catalog schemas
    CatalogTableCreate,
    CatalogTableUpdate,
    CatalogTable as CatalogTableSchema,
    CatalogColumnCreate,
    CatalogColumnUpdate,
    CatalogColumn as CatalogColumnSchema,

    # Role schemas
    RoleCreate,
    RoleUpdate,
    Role as RoleSchema,
    RoleReorderRequest,

    # Flow schemas
    BusinessFlowCreate,
    BusinessFlowUpdate,
    BusinessFlow as BusinessFlowSchema,
    ChildFlowCreate,
    FlowNodeCreate,
    FlowNodeUpdate,
    FlowNode as FlowNodeSchema,
    FlowEdgeCreate,
    FlowEdgeUpdate,
    FlowEdge as FlowEdgeSchema,

    # CRUD mapping schemas
    CrudMappingCreate,
    CrudMappingUpdate,
    CrudMapping as CrudMappingSchema,

    # Projections
    Breadcrumb,
    FlowDetail,
    DiagramExport,
    CrudMatrixCell,
    CrudMatrixRow,
    CrudMatrix,
    CsvImportResult,
)

from .catalog import CatalogService
from .catalog_import import import_csv, parse_csv_line, csv_template
from .roles import RoleService
from .flow_hierarchy import FlowHierarchyResolver
from .diagram import to_diagram_text, export_flow
from .traceability import TraceabilityIndex, ResolvedMapping
from .crud_matrix import aggregate_cell, build_crud_matrix, load_crud_matrix
from .swimlane import lane_offsets, role_for_y, lane_center, apply_position
from .sample_data import load_sample_data

from .database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    init_db,
    close_db,
)

__version__ = "0.1.0"
