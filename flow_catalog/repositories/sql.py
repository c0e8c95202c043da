"""
PostgreSQL repositories on top of a SQLAlchemy ``AsyncSession``.

Sessions come from ``DatabaseManager.get_session()``, which commits on exit
and rolls back on error; repositories only flush.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

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


class SqlRepository:
    """Id-level operations shared by every SQL repository."""

    model = None

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _list(self, query) -> list:
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _creation_order(self, query):
        return query.order_by(self.model.created_at, self.model.id)

    async def find_by_id(self, id: str):
        return await self.db.get(self.model, id)

    async def exists_by_id(self, id: str) -> bool:
        result = await self.db.execute(select(self.model.id).where(self.model.id == id))
        return result.scalar_one_or_none() is not None

    async def save(self, entity):
        # merge() returns the session-bound instance for detached or transient input
        entity = await self.db.merge(entity)
        await self.db.flush()
        logger.debug(f"{self.model.__name__} saved: {entity.id}")
        return entity

    async def delete(self, id: str) -> bool:
        result = await self.db.execute(delete(self.model).where(self.model.id == id))
        removed = result.rowcount > 0
        if removed:
            logger.debug(f"{self.model.__name__} deleted: {id}")
        return removed


class SqlTableRepository(SqlRepository, TableRepository):
    model = CatalogTable

    async def find_by_project_id(self, project_id: str) -> List[CatalogTable]:
        query = select(CatalogTable).where(CatalogTable.project_id == project_id)
        return await self._list(self._creation_order(query))

    async def find_by_name(self, project_id: str, name: str) -> Optional[CatalogTable]:
        query = select(CatalogTable).where(
            CatalogTable.project_id == project_id,
            CatalogTable.name == name,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_name(self, project_id: str, name: str) -> bool:
        return await self.find_by_name(project_id, name) is not None


class SqlColumnRepository(SqlRepository, ColumnRepository):
    model = CatalogColumn

    async def find_by_table_id(self, table_id: str) -> List[CatalogColumn]:
        query = (
            select(CatalogColumn)
            .where(CatalogColumn.table_id == table_id)
            .order_by(CatalogColumn.order, CatalogColumn.created_at)
        )
        return await self._list(query)

    async def find_by_name(self, table_id: str, name: str) -> Optional[CatalogColumn]:
        query = select(CatalogColumn).where(
            CatalogColumn.table_id == table_id,
            CatalogColumn.name == name,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_name(self, table_id: str, name: str) -> bool:
        return await self.find_by_name(table_id, name) is not None

    async def count_by_table_id(self, table_id: str) -> int:
        query = select(func.count()).select_from(CatalogColumn).where(CatalogColumn.table_id == table_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def delete_by_table_id(self, table_id: str) -> int:
        result = await self.db.execute(delete(CatalogColumn).where(CatalogColumn.table_id == table_id))
        if result.rowcount:
            logger.debug(f"Deleted {result.rowcount} columns of table {table_id}")
        return result.rowcount


class SqlRoleRepository(SqlRepository, RoleRepository):
    model = Role

    async def find_by_project_id(self, project_id: str) -> List[Role]:
        query = (
            select(Role)
            .where(Role.project_id == project_id)
            .order_by(Role.order, Role.created_at)
        )
        return await self._list(query)

    async def find_by_name(self, project_id: str, name: str) -> Optional[Role]:
        query = select(Role).where(Role.project_id == project_id, Role.name == name)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_name(self, project_id: str, name: str) -> bool:
        return await self.find_by_name(project_id, name) is not None

    async def reorder(self, project_id: str, ordered_ids: Sequence[str]) -> List[Role]:
        ordered_ids = list(ordered_ids)
        # Savepoint: either every role gets its new order or none does
        async with self.db.begin_nested():
            roles = {r.id: r for r in await self.find_by_project_id(project_id)}
            if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(roles):
                raise ValidationError(
                    "Reorder must list every role of the project exactly once", field="role_ids"
                )
            for index, role_id in enumerate(ordered_ids):
                role = roles[role_id]
                if role.order != index:
                    role.change_order(index)
            await self.db.flush()
        return [roles[role_id] for role_id in ordered_ids]


class SqlBusinessFlowRepository(SqlRepository, BusinessFlowRepository):
    model = BusinessFlow

    async def find_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        query = select(BusinessFlow).where(BusinessFlow.project_id == project_id)
        return await self._list(self._creation_order(query))

    async def find_root_flows_by_project_id(self, project_id: str) -> List[BusinessFlow]:
        query = select(BusinessFlow).where(
            BusinessFlow.project_id == project_id,
            BusinessFlow.parent_id.is_(None),
        )
        return await self._list(self._creation_order(query))

    async def find_children_by_parent_id(self, parent_id: str) -> List[BusinessFlow]:
        query = select(BusinessFlow).where(BusinessFlow.parent_id == parent_id)
        return await self._list(self._creation_order(query))


class SqlFlowNodeRepository(SqlRepository, FlowNodeRepository):
    model = FlowNode

    async def find_by_flow_id(self, flow_id: str) -> List[FlowNode]:
        query = select(FlowNode).where(FlowNode.flow_id == flow_id)
        return await self._list(self._creation_order(query))

    async def find_by_child_flow_id(self, child_flow_id: str) -> List[FlowNode]:
        query = select(FlowNode).where(FlowNode.child_flow_id == child_flow_id)
        return await self._list(self._creation_order(query))


class SqlFlowEdgeRepository(SqlRepository, FlowEdgeRepository):
    model = FlowEdge

    async def find_by_flow_id(self, flow_id: str) -> List[FlowEdge]:
        query = select(FlowEdge).where(FlowEdge.flow_id == flow_id)
        return await self._list(self._creation_order(query))

    async def find_by_node_id(self, node_id: str) -> List[FlowEdge]:
        query = select(FlowEdge).where(
            or_(FlowEdge.source_node_id == node_id, FlowEdge.target_node_id == node_id)
        )
        return await self._list(self._creation_order(query))


class SqlCrudMappingRepository(SqlRepository, CrudMappingRepository):
    model = CrudMapping

    async def _facts(self, *criteria) -> List[CrudMapping]:
        query = (
            select(CrudMapping)
            .where(*criteria)
            .order_by(CrudMapping.operation, CrudMapping.created_at, CrudMapping.id)
        )
        return await self._list(query)

    async def find_by_column_id(self, column_id: str) -> List[CrudMapping]:
        return await self._facts(CrudMapping.column_id == column_id)

    async def find_by_column_ids(self, column_ids: Sequence[str]) -> List[CrudMapping]:
        if not column_ids:
            return []
        return await self._facts(CrudMapping.column_id.in_(list(column_ids)))

    async def find_by_flow_id(self, flow_id: str) -> List[CrudMapping]:
        return await self._facts(CrudMapping.flow_id == flow_id)

    async def find_by_flow_node_id(self, flow_node_id: str) -> List[CrudMapping]:
        return await self._facts(CrudMapping.flow_node_id == flow_node_id)

    async def find_by_role_id(self, role_id: str) -> List[CrudMapping]:
        return await self._facts(CrudMapping.role_id == role_id)

    async def find_by_column_and_operation(self, column_id: str, operation: str) -> List[CrudMapping]:
        return await self._facts(
            CrudMapping.column_id == column_id,
            CrudMapping.operation == getattr(operation, "value", operation),
        )
