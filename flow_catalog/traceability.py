"""
Traceability index over CRUD mapping facts.

A fact binds (column, operation, role) to an optional flow step. Facts are
not unique per (column, operation) and deleting a column, role, flow or node
does not delete the facts that point at it. Those dangling references resolve
to ``None`` instead of raising.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from .exceptions import EntityNotFoundError
from .models import BusinessFlow, CatalogColumn, CrudMapping, FlowNode, Role
from .repositories.base import (
    BusinessFlowRepository, ColumnRepository, CrudMappingRepository,
    FlowNodeRepository, RoleRepository
)

logger = logging.getLogger(__name__)

# Sentinel for "argument not given" where None is a meaningful value
_UNSET: Any = object()


@dataclass
class ResolvedMapping:
    """A fact with its references looked up; missing entities are None."""
    mapping: CrudMapping
    column: Optional[CatalogColumn] = None
    role: Optional[Role] = None
    flow: Optional[BusinessFlow] = None
    flow_node: Optional[FlowNode] = None

    @property
    def is_dangling(self) -> bool:
        m = self.mapping
        return (
            self.column is None
            or self.role is None
            or (m.flow_id is not None and self.flow is None)
            or (m.flow_node_id is not None and self.flow_node is None)
        )


class TraceabilityIndex:
    """Create, update and query CRUD mapping facts from any axis."""

    def __init__(
        self,
        mappings: CrudMappingRepository,
        columns: ColumnRepository,
        roles: RoleRepository,
        flows: BusinessFlowRepository,
        nodes: FlowNodeRepository,
    ):
        self.mappings = mappings
        self.columns = columns
        self.roles = roles
        self.flows = flows
        self.nodes = nodes

    async def create(
        self,
        column_id: str,
        operation,
        role_id: str,
        flow_id: Optional[str] = None,
        flow_node_id: Optional[str] = None,
        how: Optional[str] = None,
        condition: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CrudMapping:
        """Record a new fact. Duplicates are allowed."""
        mapping = CrudMapping.create(
            column_id=column_id,
            operation=operation,
            role_id=role_id,
            flow_id=flow_id,
            flow_node_id=flow_node_id,
            how=how,
            condition=condition,
            description=description,
            id=self.mappings.generate_id(),
        )
        return await self.mappings.save(mapping)

    async def update(
        self,
        mapping_id: str,
        operation=None,
        role_id: Optional[str] = None,
        flow_id: Any = _UNSET,
        flow_node_id: Any = _UNSET,
        how: Any = _UNSET,
        condition: Any = _UNSET,
        description: Any = _UNSET,
    ) -> CrudMapping:
        """Change a fact in place. Location and text fields may be cleared with None."""
        mapping = await self.mappings.find_by_id(mapping_id)
        if mapping is None:
            raise EntityNotFoundError("CrudMapping", mapping_id)

        with mapping.atomic_update():
            if operation is not None:
                mapping.update_operation(operation)
            if role_id is not None:
                mapping.update_role(role_id)
            if flow_id is not _UNSET or flow_node_id is not _UNSET:
                mapping.link_to_flow(
                    mapping.flow_id if flow_id is _UNSET else flow_id,
                    mapping.flow_node_id if flow_node_id is _UNSET else flow_node_id,
                )
            if how is not _UNSET:
                mapping.update_how(how)
            if condition is not _UNSET:
                mapping.update_condition(condition)
            if description is not _UNSET:
                mapping.update_description(description)

        return await self.mappings.save(mapping)

    async def delete(self, mapping_id: str) -> bool:
        return await self.mappings.delete(mapping_id)

    async def get(self, mapping_id: str) -> Optional[CrudMapping]:
        return await self.mappings.find_by_id(mapping_id)

    async def by_column(self, column_id: str) -> List[CrudMapping]:
        return await self.mappings.find_by_column_id(column_id)

    async def by_flow(self, flow_id: str) -> List[CrudMapping]:
        return await self.mappings.find_by_flow_id(flow_id)

    async def by_flow_node(self, flow_node_id: str) -> List[CrudMapping]:
        return await self.mappings.find_by_flow_node_id(flow_node_id)

    async def by_role(self, role_id: str) -> List[CrudMapping]:
        return await self.mappings.find_by_role_id(role_id)

    async def by_column_and_operation(self, column_id: str, operation) -> List[CrudMapping]:
        return await self.mappings.find_by_column_and_operation(
            column_id, getattr(operation, "value", operation)
        )

    async def resolve(self, mapping: CrudMapping) -> ResolvedMapping:
        """Look up every entity a fact refers to; absent ones come back as None."""
        resolved = ResolvedMapping(
            mapping=mapping,
            column=await self.columns.find_by_id(mapping.column_id),
            role=await self.roles.find_by_id(mapping.role_id),
            flow=(
                await self.flows.find_by_id(mapping.flow_id)
                if mapping.flow_id else None
            ),
            flow_node=(
                await self.nodes.find_by_id(mapping.flow_node_id)
                if mapping.flow_node_id else None
            ),
        )
        if resolved.is_dangling:
            logger.warning(f"CrudMapping {mapping.id} has dangling references")
        return resolved
