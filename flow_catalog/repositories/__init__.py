"""
Repository implementations for data access.
"""

from .base import (
    BaseRepository,
    BusinessFlowRepository,
    ColumnRepository,
    CrudMappingRepository,
    FlowEdgeRepository,
    FlowNodeRepository,
    RoleRepository,
    TableRepository,
)
from .memory import (
    InMemoryBusinessFlowRepository,
    InMemoryColumnRepository,
    InMemoryCrudMappingRepository,
    InMemoryFlowEdgeRepository,
    InMemoryFlowNodeRepository,
    InMemoryRoleRepository,
    InMemoryTableRepository,
)
from .sql import (
    SqlBusinessFlowRepository,
    SqlColumnRepository,
    SqlCrudMappingRepository,
    SqlFlowEdgeRepository,
    SqlFlowNodeRepository,
    SqlRoleRepository,
    SqlTableRepository,
)

__all__ = [
    "BaseRepository",
    "TableRepository",
    "ColumnRepository",
    "RoleRepository",
    "BusinessFlowRepository",
    "FlowNodeRepository",
    "FlowEdgeRepository",
    "CrudMappingRepository",
    "InMemoryTableRepository",
    "InMemoryColumnRepository",
    "InMemoryRoleRepository",
    "InMemoryBusinessFlowRepository",
    "InMemoryFlowNodeRepository",
    "InMemoryFlowEdgeRepository",
    "InMemoryCrudMappingRepository",
    "SqlTableRepository",
    "SqlColumnRepository",
    "SqlRoleRepository",
    "SqlBusinessFlowRepository",
    "SqlFlowNodeRepository",
    "SqlFlowEdgeRepository",
    "SqlCrudMappingRepository",
]
