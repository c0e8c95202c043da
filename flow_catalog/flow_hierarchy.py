"""
Flow hierarchy: nested business flows and the node to child-flow link.

Creating a child flow and linking it to a node are two separate writes with
no transaction around them. If the link fails after the flow was created the
flow is left behind as an orphan; ``find_orphaned_child_flows`` lists those.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import MAX_FLOW_DEPTH
from .diagram import export_flow
from .exceptions import DomainError, EntityNotFoundError, ValidationError
from .models import BusinessFlow, FlowEdge, FlowNode
from .repositories.base import (
    BusinessFlowRepository, FlowEdgeRepository, FlowNodeRepository, RoleRepository
)
from .schemas import (
    Breadcrumb, BusinessFlow as BusinessFlowSchema, DiagramExport, FlowDetail,
    FlowEdge as FlowEdgeSchema, FlowNode as FlowNodeSchema, FlowNodeType
)
from .swimlane import apply_position

logger = logging.getLogger(__name__)


class FlowHierarchyResolver:
    """Navigate and maintain the parent/child tree of business flows."""

    def __init__(
        self,
        flows: BusinessFlowRepository,
        nodes: FlowNodeRepository,
        edges: FlowEdgeRepository,
        roles: Optional[RoleRepository] = None,
        max_depth: int = MAX_FLOW_DEPTH,
    ):
        self.flows = flows
        self.nodes = nodes
        self.edges = edges
        self.roles = roles
        self.max_depth = max_depth

    async def _get_flow(self, flow_id: str) -> BusinessFlow:
        flow = await self.flows.find_by_id(flow_id)
        if flow is None:
            raise EntityNotFoundError("BusinessFlow", flow_id)
        return flow

    async def _get_node(self, node_id: str) -> FlowNode:
        node = await self.nodes.find_by_id(node_id)
        if node is None:
            raise EntityNotFoundError("FlowNode", node_id)
        return node

    async def _project_roles(self, project_id: str) -> list:
        if self.roles is None:
            return []
        return await self.roles.find_by_project_id(project_id)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def create_flow(
        self, project_id: str, name: str, description: Optional[str] = None
    ) -> BusinessFlow:
        flow = BusinessFlow.create(
            project_id=project_id,
            name=name,
            description=description,
            id=self.flows.generate_id(),
        )
        return await self.flows.save(flow)

    async def create_child_flow(
        self, parent: BusinessFlow, name: str, description: Optional[str] = None
    ) -> BusinessFlow:
        """New flow one level below ``parent``. The caller links it to a node separately."""
        child = BusinessFlow.create_child_flow(
            parent, name, description, id=self.flows.generate_id()
        )
        child = await self.flows.save(child)
        logger.info(f"Created child flow {child.id} under {parent.id} at depth {child.depth}")
        return child

    async def update_flow(
        self,
        flow_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BusinessFlow:
        flow = await self._get_flow(flow_id)
        with flow.atomic_update():
            if name is not None:
                flow.update_name(name)
            if description is not None:
                flow.update_description(description)
        return await self.flows.save(flow)

    async def increment_version(self, flow_id: str) -> BusinessFlow:
        flow = await self._get_flow(flow_id)
        flow.increment_version()
        return await self.flows.save(flow)

    async def delete_flow(self, flow_id: str) -> bool:
        """Delete one flow. Its nodes, edges and child flows are left in place."""
        return await self.flows.delete(flow_id)

    # ------------------------------------------------------------------
    # Node <-> child flow link
    # ------------------------------------------------------------------

    async def link_child_flow(self, node: FlowNode, child_flow_id: str) -> FlowNode:
        """Point a business-block node at its sub-flow. Relinking the same id is a no-op."""
        if node.child_flow_id == child_flow_id:
            return node
        if not node.is_business_block:
            raise ValidationError(
                "Only PROCESS or DECISION nodes can have child flows", field="child_flow_id"
            )
        child = await self._get_flow(child_flow_id)
        if child.parent_id != node.flow_id:
            raise ValidationError(
                f"Flow '{child_flow_id}' is not a child of flow '{node.flow_id}'",
                field="child_flow_id",
            )
        parent = await self._get_flow(node.flow_id)
        if child.depth != parent.depth + 1:
            raise ValidationError(
                f"Flow '{child_flow_id}' has depth {child.depth}, expected {parent.depth + 1}",
                field="child_flow_id",
            )
        node.link_child_flow(child_flow_id)
        return await self.nodes.save(node)

    async def unlink_child_flow(self, node: FlowNode) -> FlowNode:
        """Clear the link; the referenced flow is kept so it can be relinked later."""
        if node.child_flow_id is None:
            return node
        node.unlink_child_flow()
        return await self.nodes.save(node)

    async def create_and_link_child_flow(
        self,
        node_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BusinessFlow:
        """Create a sub-flow for a node and link it, as two independent writes.

        A failure after the flow is saved leaves it orphaned; the failure is
        logged with the orphan's id and re-raised.
        """
        node = await self._get_node(node_id)
        if not node.is_business_block:
            raise ValidationError(
                "Only PROCESS or DECISION nodes can have child flows", field="child_flow_id"
            )
        parent = await self._get_flow(node.flow_id)
        child = await self.create_child_flow(parent, name or f"{node.label} detail", description)
        try:
            await self.link_child_flow(node, child.id)
        except DomainError:
            logger.warning(
                f"Child flow {child.id} was created but could not be linked to node {node.id}; "
                f"it is now orphaned"
            )
            raise
        return child

    async def find_owning_node(self, flow_id: str) -> Optional[FlowNode]:
        """The node that decomposes into ``flow_id``, found by scanning nodes."""
        owners = await self.nodes.find_by_child_flow_id(flow_id)
        if len(owners) > 1:
            logger.warning(f"Flow {flow_id} is linked from {len(owners)} nodes")
        return owners[0] if owners else None

    async def find_orphaned_child_flows(self, project_id: str) -> List[BusinessFlow]:
        """Child flows of a project that no node links to."""
        orphans = []
        for flow in await self.flows.find_by_project_id(project_id):
            if flow.parent_id is None:
                continue
            if not await self.nodes.find_by_child_flow_id(flow.id):
                orphans.append(flow)
        return orphans

    # ------------------------------------------------------------------
    # Nodes and edges
    # ------------------------------------------------------------------

    async def add_node(
        self,
        flow_id: str,
        label: str,
        type: Any = FlowNodeType.PROCESS,
        description: Optional[str] = None,
        position_x: float = 0,
        position_y: float = 0,
        role_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> FlowNode:
        await self._get_flow(flow_id)
        node = FlowNode.create(
            flow_id=flow_id,
            label=label,
            type=type,
            description=description,
            position_x=position_x,
            position_y=position_y,
            role_id=role_id,
            metadata=metadata,
            id=self.nodes.generate_id(),
        )
        return await self.nodes.save(node)

    async def move_node(self, node_id: str, x: float, y: float) -> FlowNode:
        """Move a node on the canvas; its role follows the swimlane it lands in."""
        node = await self._get_node(node_id)
        flow = await self._get_flow(node.flow_id)
        apply_position(node, x, y, await self._project_roles(flow.project_id))
        return await self.nodes.save(node)

    async def move_nodes(
        self, flow_id: str, positions: Mapping[str, Tuple[float, float]]
    ) -> List[FlowNode]:
        """Bulk variant of ``move_node`` for layout saves; unknown node ids are skipped."""
        flow = await self._get_flow(flow_id)
        roles = await self._project_roles(flow.project_id)
        moved = []
        for node in await self.nodes.find_by_flow_id(flow_id):
            if node.id not in positions:
                continue
            x, y = positions[node.id]
            apply_position(node, x, y, roles)
            moved.append(await self.nodes.save(node))
        return moved

    async def update_node(
        self,
        node_id: str,
        label: Optional[str] = None,
        description: Optional[str] = None,
        type: Any = None,
        position_x: Optional[float] = None,
        position_y: Optional[float] = None,
        role_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> FlowNode:
        """Edit a node. An explicit ``role_id`` wins over the lane the new position falls in.

        A position with only one axis given keeps the node's current value for
        the other axis.
        """
        node = await self._get_node(node_id)
        roles = []
        if position_x is not None or position_y is not None:
            flow = await self._get_flow(node.flow_id)
            roles = await self._project_roles(flow.project_id)

        with node.atomic_update():
            if label is not None:
                node.update_label(label)
            if description is not None:
                node.update_description(description)
            if type is not None:
                node.update_type(type)
            if position_x is not None or position_y is not None:
                apply_position(
                    node,
                    node.position_x if position_x is None else position_x,
                    node.position_y if position_y is None else position_y,
                    roles,
                )
            if role_id is not None:
                node.assign_role(role_id or None)
            if metadata is not None:
                node.update_metadata(metadata)
        return await self.nodes.save(node)

    async def delete_node(self, node_id: str) -> bool:
        """Delete a node. A linked child flow survives and shows up as an orphan."""
        return await self.nodes.delete(node_id)

    async def add_edge(
        self,
        flow_id: str,
        source_node_id: str,
        target_node_id: str,
        label: Optional[str] = None,
        condition: Optional[str] = None,
    ) -> FlowEdge:
        edge = FlowEdge.create(
            flow_id=flow_id,
            source_node_id=source_node_id,
            target_node_id=target_node_id,
            label=label,
            condition=condition,
            id=self.edges.generate_id(),
        )
        edge.validate_endpoints(
            await self.nodes.find_by_id(source_node_id),
            await self.nodes.find_by_id(target_node_id),
        )
        return await self.edges.save(edge)

    async def update_edge(
        self,
        edge_id: str,
        label: Optional[str] = None,
        condition: Optional[str] = None,
    ) -> FlowEdge:
        edge = await self.edges.find_by_id(edge_id)
        if edge is None:
            raise EntityNotFoundError("FlowEdge", edge_id)
        with edge.atomic_update():
            if label is not None:
                edge.update_label(label)
            if condition is not None:
                edge.update_condition(condition)
        return await self.edges.save(edge)

    async def delete_edge(self, edge_id: str) -> bool:
        return await self.edges.delete(edge_id)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def resolve_breadcrumbs(self, flow: BusinessFlow) -> List[Breadcrumb]:
        """Ancestor chain ``[root, ..., flow]`` built by following ``parent_id``.

        The walk is pointer driven. It stops at a missing parent, at an id it
        has already visited, or after ``max_depth`` parent hops, returning
        whatever chain it collected. A truncated chain therefore holds
        ``max_depth + 1`` entries: the flow itself plus ``max_depth`` ancestors.
        """
        breadcrumbs: List[Breadcrumb] = []
        visited = set()
        current: Optional[BusinessFlow] = flow

        while current is not None:
            if current.id in visited:
                logger.warning(f"Cycle in parent chain of flow {flow.id} at {current.id}")
                break
            if len(breadcrumbs) > self.max_depth:
                logger.warning(
                    f"Breadcrumbs for flow {flow.id} truncated after {self.max_depth} parent hops"
                )
                break
            visited.add(current.id)
            breadcrumbs.insert(0, Breadcrumb(id=current.id, name=current.name, depth=current.depth))

            if current.parent_id is None:
                break
            parent = await self.flows.find_by_id(current.parent_id)
            if parent is None:
                logger.warning(
                    f"Flow {current.id} references missing parent {current.parent_id}"
                )
            current = parent

        return breadcrumbs

    async def get_flow_detail(self, flow_id: str) -> FlowDetail:
        """Flow projection handed to diagram renderers."""
        flow = await self._get_flow(flow_id)
        nodes = await self.nodes.find_by_flow_id(flow_id)
        edges = await self.edges.find_by_flow_id(flow_id)
        children = await self.flows.find_children_by_parent_id(flow_id)
        breadcrumbs = await self.resolve_breadcrumbs(flow)

        return FlowDetail(
            **BusinessFlowSchema.model_validate(flow).model_dump(),
            nodes=[FlowNodeSchema.model_validate(n) for n in nodes],
            edges=[FlowEdgeSchema.model_validate(e) for e in edges],
            breadcrumbs=breadcrumbs,
            children=[BusinessFlowSchema.model_validate(c) for c in children],
        )

    async def export_diagram(self, flow_id: str) -> DiagramExport:
        flow = await self._get_flow(flow_id)
        nodes = await self.nodes.find_by_flow_id(flow_id)
        edges = await self.edges.find_by_flow_id(flow_id)
        roles = await self._project_roles(flow.project_id)
        return export_flow(flow, nodes, edges, roles)
