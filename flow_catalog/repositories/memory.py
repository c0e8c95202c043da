"""
In-memory repositories for development and testing.

Entities are kept in process-local dicts; iteration follows insertion order,
so "creation order" is simply the order in which entities were first saved.
"""

import logging
from typing import Dict, Generic, List, Optional, Sequence, TypeVar

from ..exceptions import ValidationError
from ..models import (
    BusinessFlow, CatalogColumn, CatalogTable, CrudMapping, FlowEdge, FlowNode,
    Role
)
from .base import (
    BusinessFlowRepository, ColumnRepository, CrudMappingRepository,
    FlowEdgeRepository, FlowNodeRepository, RoleRepository, TableRepository
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryStore(Generic[T]):
    """Shared dict-backed implementation of the id-level operations."""

    entity_name = "Entity"

    def __init__(self) -> None:
        self._items: Dict[str, T] = {}

    def _all(self) -> List[T]:
        return list(self._items.values())

    async def find_by_id(self, id: str) -> Optional[T]:
        return self._items.get(id)

    async def exists_by_id(self, id: str) -> bool:
        return id in self._items

    async def save(self, entity: T) -> T:
        self._items[entity.id] = entity
        logger.debug(f"{self.entity_name} saved: {entity.id}")
        return entity

    async def delete(self, id: str) -> bool:
        if id in self._items:
            del self._items[id]
            logger.debug(f"{self.entity_name} deleted: {id}")
            return True
        return False


class InMemoryTableRepository(InMemoryStore[CatalogTable], TableRepository):
    entity_name = "Table"

    async def find_by_project_id(self, project_id: str) -> List[CatalogTable]:
        return [t for t in self._all() if t.project_id == project_id]

    async def find_by_name(self, project_id: str, name: str) -> Optional[CatalogTable]:
        for table in self._all():
            if table.project_id == project_id and table.name == name:
                return table
        return None

    async def exists_by_name(self, project_id: str, name: str) -> bool:
        return await self.find_by_name(project_id, name) is not None


class InMemoryColumnRepository(InMemoryStore[CatalogColumn], ColumnRepository):
    entity_name = "Column"

    async def find_by_table_id(self, table_id: str) -> List[CatalogColumn]:
        columns = [c for c in self._all() if c.table_id == table_id]
        return sorted(columns, key=lambda c: c.order)

    async def find_by_name(self, table_id: str, name: str) -> Optional[CatalogColumn]:
        for column in self._all():
            if column.table_id == table_id and column.name == name:
                return column
        return None

    async def exists_by_name(self, table_id: str, name: str) -> bool:
        return await self.find_by_name(table_id, name) is not None

    async def count_by_table_id(self, table_id: str) -> int:
        return sum(1 for c in self._all() if c.table_id == table_id)

    async def delete_by_table_id(self, table_id: str) -> int:
        doomed = [c.id for c in self._all() if c.table_id == table_id]
        for column_id in doomed:
            del self._items[column_id]
        if doomed:
            logger.debug(f"Deleted {len(doomed)} columns of table {table_id}")
        return len(doomed)


class InMemoryRoleRepository(InMemoryStore[Role], RoleRepository):
    entity_name = "Role"

    async def find_by_project_id(self, project_id: str) -> List[Role]:
        roles = [r for r in self._all() if r.project_id == project_id]
        return sorted(roles, key=lambda r: r.order)

    async def find_by_name(self, project_id: str, name: str) -> Optional[Role]:
        for role in self._all():
            if role.project_id == project_id and role.name == name:
                return role
        return None

    async def exists_by_name(self, project_id: str, name: str) -> bool:
        return await self.find_by_name(project_id, name) is not None

    async def reorder(self, project_id: str, ordered_ids: Sequence[str]) -> List[Role]:
        roles = {r.id: r for r in self._all() if r.project_id == project_id}
        ordered_ids = list(ordered_ids)
        # Validate everything before touching any role
        if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(roles):
            raise ValidationError(
                "Reorder must list every role of the project exactly once", field="role_ids"
            )
        for index, role_id in enumerate(ordered_ids):
            role = roles[role_id]
            if role.order != index:
                role.change_order(index)
        return [roles[role_id] for role_id in ordered_ids]


class InMemoryBusinessFlowRepository(InMemoryStore[BusinessFlow], BusinessFlowRepository):
    entity_name = "BusinessFlow"

    async def find_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        return [f for f in self._all() if f.project_id == project_id]

    async def find_root_flows_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        return [f for f in self._all() if f.project_id == project_id and f.parent_id is None]

    async def find_children_by_parent_id(self, parent_id: str) -> List[BusinessFlow]:
        return [f for f in self._all() if f.parent_id == parent_id]


class InMemoryFlowNodeRepository(InMemoryStore[FlowNode], FlowNodeRepository):
    entity_name = "FlowNode"

    async def find_by_flow_id(self, flow_id: str) -> List[FlowNode]:
        return [n for n in self._all() if n.flow_id == flow_id]

    async def find_by_child_flow_id(self, child_flow_id: str) -> List[FlowNode]:
        return [n for n in self._all() if n.child_flow_id == child_flow_id]


class InMemoryFlowEdgeRepository(InMemoryStore[FlowEdge], FlowEdgeRepository):
    entity_name = "FlowEdge"

    async def find_by_flow_id(self, flow_id: str) -> List[FlowEdge]:
        return [e for e in self._all() if e.flow_id == flow_id]

    async def find_by_node_id(self, node_id: str) -> List[FlowEdge]:
        return [
            e for e in self._all()
            if e.source_node_id == node_id or e.target_node_id == node_id
        ]


class InMemoryCrudMappingRepository(InMemoryStore[CrudMapping], CrudMappingRepository):
    entity_name = "CrudMapping"

    def _matching(self, predicate) -> List[CrudMapping]:
        # sorted() is stable, so creation order breaks ties
        return sorted((m for m in self._all() if predicate(m)), key=lambda m: m.operation)

    async def find_by_column_id(self, column_id: str) -> List[CrudMapping]:
        return self._matching(lambda m: m.column_id == column_id)

    async def find_by_column_ids(self, column_ids: Sequence[str]) -> List[CrudMapping]:
        wanted = set(column_ids)
        return self._matching(lambda m: m.column_id in wanted)

    async def find_by_flow_id(self, flow_id: str) -> List[CrudMapping]:
        return self._matching(lambda m: m.flow_id == flow_id)

    async def find_by_flow_node_id(self, flow_node_id: str) -> List[CrudMapping]:
        return self._matching(lambda m: m.flow_node_id == flow_node_id)

    async def find_by_role_id(self, role_id: str) -> List[CrudMapping]:
        return self._matching(lambda m: m.role_id == role_id)

    async def find_by_column_and_operation(self, column_id: str, operation: str) -> List[CrudMapping]:
        return self._matching(lambda m: m.column_id == column_id and m.operation == operation)
