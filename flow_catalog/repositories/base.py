"""
Repository contracts for the Flow Catalog entities.

Every lookup by id returns ``None`` when nothing matches; references between
entities are plain ids and may dangle, so callers must treat absence as a
normal outcome rather than an error.
"""

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Sequence, TypeVar

from ..models import (
    BusinessFlow, CatalogColumn, CatalogTable, CrudMapping, FlowEdge, FlowNode,
    Role, new_id
)

T = TypeVar("T")


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for repositories.
    """

    @abstractmethod
    async def find_by_id(self, id: str) -> Optional[T]:
        """Get an entity by ID."""
        ...

    @abstractmethod
    async def exists_by_id(self, id: str) -> bool:
        """Check if an entity exists."""
        ...

    @abstractmethod
    async def save(self, entity: T) -> T:
        """Create or update an entity."""
        ...

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete an entity by ID. Returns whether anything was removed."""
        ...

    def generate_id(self) -> str:
        return new_id()


class TableRepository(BaseRepository[CatalogTable]):

    @abstractmethod
    async def find_by_project_id(self, project_id: str) -> List[CatalogTable]:
        ...

    @abstractmethod
    async def find_by_name(self, project_id: str, name: str) -> Optional[CatalogTable]:
        ...

    @abstractmethod
    async def exists_by_name(self, project_id: str, name: str) -> bool:
        ...


class ColumnRepository(BaseRepository[CatalogColumn]):

    @abstractmethod
    async def find_by_table_id(self, table_id: str) -> List[CatalogColumn]:
        """Columns of a table in display order."""
        ...

    @abstractmethod
    async def find_by_name(self, table_id: str, name: str) -> Optional[CatalogColumn]:
        ...

    @abstractmethod
    async def exists_by_name(self, table_id: str, name: str) -> bool:
        ...

    @abstractmethod
    async def count_by_table_id(self, table_id: str) -> int:
        ...

    @abstractmethod
    async def delete_by_table_id(self, table_id: str) -> int:
        """Remove every column of a table. Returns how many were removed."""
        ...


class RoleRepository(BaseRepository[Role]):

    @abstractmethod
    async def find_by_project_id(self, project_id: str) -> List[Role]:
        """Roles of a project ordered by ``order``."""
        ...

    @abstractmethod
    async def find_by_name(self, project_id: str, name: str) -> Optional[Role]:
        ...

    @abstractmethod
    async def exists_by_name(self, project_id: str, name: str) -> bool:
        ...

    @abstractmethod
    async def reorder(self, project_id: str, ordered_ids: Sequence[str]) -> List[Role]:
        """
        Assign ``order = index`` to every role of the project, all or nothing.

        ``ordered_ids`` must list each of the project's roles exactly once;
        otherwise nothing changes and ValidationError is raised.
        """
        ...


class BusinessFlowRepository(BaseRepository[BusinessFlow]):

    @abstractmethod
    async def find_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        ...

    @abstractmethod
    async def find_root_flows_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        ...

    @abstractmethod
    async def find_children_by_parent_id(self, parent_id: str) -> List[BusinessFlow]:
        ...


class FlowNodeRepository(BaseRepository[FlowNode]):

    @abstractmethod
    async def find_by_flow_id(self, flow_id: str) -> List[FlowNode]:
        """Nodes of a flow in creation order."""
        ...

    @abstractmethod
    async def find_by_child_flow_id(self, child_flow_id: str) -> List[FlowNode]:
        """Nodes that decompose into the given flow (a scan; no reverse pointer exists)."""
        ...


class FlowEdgeRepository(BaseRepository[FlowEdge]):

    @abstractmethod
    async def find_by_flow_id(self, flow_id: str) -> List[FlowEdge]:
        """Edges of a flow in creation order."""
        ...

    @abstractmethod
    async def find_by_node_id(self, node_id: str) -> List[FlowEdge]:
        """Edges entering or leaving a node."""
        ...


class CrudMappingRepository(BaseRepository[CrudMapping]):
    """Fact lookups are ordered by operation, then creation order."""

    @abstractmethod
    async def find_by_column_id(self, column_id: str) -> List[CrudMapping]:
        ...

    @abstractmethod
    async def find_by_column_ids(self, column_ids: Sequence[str]) -> List[CrudMapping]:
        ...

    @abstractmethod
    async def find_by_flow_id(self, flow_id: str) -> List[CrudMapping]:
        ...

    @abstractmethod
    async def find_by_flow_node_id(self, flow_node_id: str) -> List[CrudMapping]:
        ...

    @abstractmethod
    async def find_by_role_id(self, role_id: str) -> List[CrudMapping]:
        ...

    @abstractmethod
    async def find_by_column_and_operation(self, column_id: str, operation: str) -> List[CrudMapping]:
        ...
