"""Unit tests for the flow hierarchy resolver."""
import logging

import pytest
from unittest.mock import AsyncMock

from flow_catalog.exceptions import EntityNotFoundError, ValidationError
from flow_catalog.flow_hierarchy import FlowHierarchyResolver
from flow_catalog.models import BusinessFlow
from flow_catalog.schemas import FlowNodeType


class TestChildFlows:

    @pytest.mark.asyncio
    async def test_create_child_flow_sets_parent_and_depth(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "Order processing")
        child = await resolver.create_child_flow(root, "Packing", "Detailed packing steps")

        assert child.parent_id == root.id
        assert child.depth == root.depth + 1
        assert child.version == 1
        assert child.project_id == project_id

    @pytest.mark.asyncio
    async def test_create_child_flow_does_not_link(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        child = await resolver.create_child_flow(root, "child")

        assert await resolver.find_owning_node(child.id) is None
        assert await resolver.find_orphaned_child_flows(project_id) == [child]

    @pytest.mark.asyncio
    async def test_link_is_idempotent(self, resolver, node_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "Pack order")
        child = await resolver.create_child_flow(root, "Packing")

        await resolver.link_child_flow(node, child.id)
        await resolver.link_child_flow(node, child.id)

        stored = await node_repo.find_by_id(node.id)
        assert stored.child_flow_id == child.id
        assert await resolver.find_owning_node(child.id) == node
        assert await resolver.find_orphaned_child_flows(project_id) == []

    @pytest.mark.asyncio
    async def test_link_rejects_non_business_block(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        start = await resolver.add_node(root.id, "Start", type=FlowNodeType.START)
        child = await resolver.create_child_flow(root, "child")

        with pytest.raises(ValidationError):
            await resolver.link_child_flow(start, child.id)
        assert start.child_flow_id is None

    @pytest.mark.asyncio
    async def test_link_requires_child_of_owning_flow(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        other = await resolver.create_flow(project_id, "other")
        node = await resolver.add_node(root.id, "step")
        foreign_child = await resolver.create_child_flow(other, "not ours")

        with pytest.raises(ValidationError):
            await resolver.link_child_flow(node, foreign_child.id)

    @pytest.mark.asyncio
    async def test_link_rejects_wrong_depth(self, resolver, flow_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        mid = await resolver.create_child_flow(root, "mid")
        node = await resolver.add_node(mid.id, "step")
        # parented by mid but placed at the same depth as mid
        sub = await flow_repo.save(BusinessFlow.create(project_id, "sub", parent_id=mid.id, depth=1))

        with pytest.raises(ValidationError):
            await resolver.link_child_flow(node, sub.id)
        assert node.child_flow_id is None
        assert await resolver.find_owning_node(sub.id) is None

    @pytest.mark.asyncio
    async def test_link_unknown_flow(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "step")

        with pytest.raises(EntityNotFoundError):
            await resolver.link_child_flow(node, "missing-flow")

    @pytest.mark.asyncio
    async def test_unlink_keeps_child_flow(self, resolver, flow_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "step", type=FlowNodeType.DECISION)
        child = await resolver.create_child_flow(root, "child")
        await resolver.link_child_flow(node, child.id)

        await resolver.unlink_child_flow(node)

        assert node.child_flow_id is None
        assert await flow_repo.find_by_id(child.id) is not None
        assert await resolver.find_orphaned_child_flows(project_id) == [child]

    @pytest.mark.asyncio
    async def test_create_and_link_child_flow(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "Approve")

        child = await resolver.create_and_link_child_flow(node.id)

        assert child.name == "Approve detail"
        assert child.depth == 1
        assert (await resolver.find_owning_node(child.id)).id == node.id

    @pytest.mark.asyncio
    async def test_create_and_link_rejects_before_creating(self, resolver, flow_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        end = await resolver.add_node(root.id, "End", type=FlowNodeType.END)

        with pytest.raises(ValidationError):
            await resolver.create_and_link_child_flow(end.id, "detail")
        assert await flow_repo.find_children_by_parent_id(root.id) == []

    @pytest.mark.asyncio
    async def test_failed_link_leaves_orphan(self, resolver, project_id, caplog):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "step")
        resolver.link_child_flow = AsyncMock(side_effect=ValidationError("link rejected"))

        with caplog.at_level(logging.WARNING, logger="flow_catalog.flow_hierarchy"):
            with pytest.raises(ValidationError):
                await resolver.create_and_link_child_flow(node.id, "detail")

        orphans = await resolver.find_orphaned_child_flows(project_id)
        assert [o.name for o in orphans] == ["detail"]
        assert "orphaned" in caplog.text


class TestBreadcrumbs:

    @pytest.mark.asyncio
    async def test_three_level_chain(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        child = await resolver.create_child_flow(root, "child")
        grandchild = await resolver.create_child_flow(child, "grandchild")

        crumbs = await resolver.resolve_breadcrumbs(grandchild)

        assert [c.id for c in crumbs] == [root.id, child.id, grandchild.id]
        assert [c.name for c in crumbs] == ["root", "child", "grandchild"]
        assert [c.depth for c in crumbs] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_root_only(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        crumbs = await resolver.resolve_breadcrumbs(root)
        assert [c.id for c in crumbs] == [root.id]

    @pytest.mark.asyncio
    async def test_missing_parent_ends_walk(self, resolver, flow_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        child = await resolver.create_child_flow(root, "child")
        await flow_repo.delete(root.id)

        crumbs = await resolver.resolve_breadcrumbs(child)
        assert [c.id for c in crumbs] == [child.id]

    @pytest.mark.asyncio
    async def test_cycle_terminates(self, resolver, flow_repo, project_id, caplog):
        a = BusinessFlow.create(project_id, "a", parent_id="flow-b", depth=1, id="flow-a")
        b = BusinessFlow.create(project_id, "b", parent_id="flow-a", depth=1, id="flow-b")
        await flow_repo.save(a)
        await flow_repo.save(b)

        with caplog.at_level(logging.WARNING):
            crumbs = await resolver.resolve_breadcrumbs(a)

        assert [c.id for c in crumbs] == ["flow-b", "flow-a"]
        assert "Cycle" in caplog.text

    @pytest.mark.asyncio
    async def test_depth_limit(self, flow_repo, node_repo, edge_repo, project_id):
        resolver = FlowHierarchyResolver(flow_repo, node_repo, edge_repo, max_depth=3)
        flow = await resolver.create_flow(project_id, "level-0")
        for level in range(1, 6):
            flow = await resolver.create_child_flow(flow, f"level-{level}")

        crumbs = await resolver.resolve_breadcrumbs(flow)

        assert len(crumbs) == 4
        # the flow itself plus three ancestors
        assert crumbs[-1].name == "level-5"

    @pytest.mark.asyncio
    async def test_walk_follows_pointers_not_depth(self, resolver, flow_repo, project_id):
        root = await resolver.create_flow(project_id, "root")
        # Depth claims 5 but the chain is only two long
        child = BusinessFlow.create(project_id, "child", parent_id=root.id, depth=5)
        await flow_repo.save(child)

        crumbs = await resolver.resolve_breadcrumbs(child)
        assert [c.name for c in crumbs] == ["root", "child"]


class TestFlowEditing:

    @pytest.mark.asyncio
    async def test_add_node_to_unknown_flow(self, resolver):
        with pytest.raises(EntityNotFoundError):
            await resolver.add_node("missing", "step")

    @pytest.mark.asyncio
    async def test_edges_allow_cycles(self, resolver, project_id):
        flow = await resolver.create_flow(project_id, "retry loop")
        a = await resolver.add_node(flow.id, "try")
        b = await resolver.add_node(flow.id, "check", type=FlowNodeType.DECISION)
        await resolver.add_edge(flow.id, a.id, b.id)
        back = await resolver.add_edge(flow.id, b.id, a.id, label="retry")
        assert back.label == "retry"

    @pytest.mark.asyncio
    async def test_edge_across_flows_rejected(self, resolver, project_id):
        f1 = await resolver.create_flow(project_id, "one")
        f2 = await resolver.create_flow(project_id, "two")
        a = await resolver.add_node(f1.id, "a")
        b = await resolver.add_node(f2.id, "b")

        with pytest.raises(ValidationError):
            await resolver.add_edge(f1.id, a.id, b.id)

    @pytest.mark.asyncio
    async def test_move_node_reassigns_role(self, resolver, role_service, project_id):
        customer = await role_service.create_role(project_id, "customer")
        warehouse = await role_service.create_role(project_id, "warehouse")
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "ship", role_id=customer.id)

        moved = await resolver.move_node(node.id, 200, 150)

        assert (moved.position_x, moved.position_y) == (200, 150)
        assert moved.role_id == warehouse.id

    @pytest.mark.asyncio
    async def test_move_nodes_in_bulk(self, resolver, role_service, project_id):
        customer = await role_service.create_role(project_id, "customer")
        warehouse = await role_service.create_role(project_id, "warehouse")
        flow = await resolver.create_flow(project_id, "flow")
        a = await resolver.add_node(flow.id, "order")
        b = await resolver.add_node(flow.id, "ship")
        untouched = await resolver.add_node(flow.id, "archive", role_id=customer.id)

        moved = await resolver.move_nodes(flow.id, {a.id: (0, 10), b.id: (100, 130), "gone": (0, 0)})

        assert [n.id for n in moved] == [a.id, b.id]
        assert a.role_id == customer.id
        assert b.role_id == warehouse.id
        assert (untouched.position_x, untouched.position_y) == (0, 0)

    @pytest.mark.asyncio
    async def test_update_node_explicit_role_wins(self, resolver, role_service, project_id):
        customer = await role_service.create_role(project_id, "customer")
        await role_service.create_role(project_id, "warehouse")
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "ship")

        updated = await resolver.update_node(
            node.id, label="Ship order", position_x=50, position_y=150,
            role_id=customer.id, metadata={"sla": "1d"},
        )

        assert updated.label == "Ship order"
        assert updated.position_y == 150
        assert updated.role_id == customer.id
        assert updated.metadata_dict == {"sla": "1d"}

    @pytest.mark.asyncio
    async def test_update_node_type_guard(self, resolver, project_id):
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "step")
        await resolver.create_and_link_child_flow(node.id)

        with pytest.raises(ValidationError):
            await resolver.update_node(node.id, type=FlowNodeType.END)
        assert (await resolver.update_node(node.id, type="decision")).type == FlowNodeType.DECISION

    @pytest.mark.asyncio
    async def test_rejected_node_update_changes_nothing(self, resolver, node_repo, role_service, project_id):
        await role_service.create_role(project_id, "customer")
        await role_service.create_role(project_id, "warehouse")
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "step")
        await resolver.create_and_link_child_flow(node.id)

        with pytest.raises(ValidationError):
            await resolver.update_node(
                node.id, label="renamed", type=FlowNodeType.END, position_x=300, position_y=150,
            )

        stored = await node_repo.find_by_id(node.id)
        assert stored.label == "step"
        assert stored.type == FlowNodeType.PROCESS
        assert (stored.position_x, stored.position_y) == (0, 0)
        assert stored.role_id is None

    @pytest.mark.asyncio
    async def test_update_node_keeps_missing_axis(self, resolver, role_service, project_id):
        await role_service.create_role(project_id, "customer")
        warehouse = await role_service.create_role(project_id, "warehouse")
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "ship", position_x=80)

        updated = await resolver.update_node(node.id, position_y=150)

        assert (updated.position_x, updated.position_y) == (80, 150)
        assert updated.role_id == warehouse.id

    @pytest.mark.asyncio
    async def test_update_edge(self, resolver, project_id):
        flow = await resolver.create_flow(project_id, "flow")
        a = await resolver.add_node(flow.id, "a")
        b = await resolver.add_node(flow.id, "b")
        edge = await resolver.add_edge(flow.id, a.id, b.id)

        updated = await resolver.update_edge(edge.id, label="approved", condition="amount < 100")

        assert (updated.label, updated.condition) == ("approved", "amount < 100")
        with pytest.raises(EntityNotFoundError):
            await resolver.update_edge("missing", label="x")

    @pytest.mark.asyncio
    async def test_increment_version(self, resolver, project_id):
        flow = await resolver.create_flow(project_id, "flow")
        await resolver.update_flow(flow.id, name="renamed")
        assert flow.version == 1
        assert (await resolver.increment_version(flow.id)).version == 2

    @pytest.mark.asyncio
    async def test_deleting_node_orphans_child_flow(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        node = await resolver.add_node(root.id, "step")
        child = await resolver.create_and_link_child_flow(node.id, "detail")

        await resolver.delete_node(node.id)

        assert await resolver.find_orphaned_child_flows(project_id) == [child]


class TestProjections:

    @pytest.mark.asyncio
    async def test_flow_detail(self, resolver, project_id):
        root = await resolver.create_flow(project_id, "root")
        a = await resolver.add_node(root.id, "start", type=FlowNodeType.START)
        b = await resolver.add_node(root.id, "work", metadata={"owner": "ops"})
        await resolver.add_edge(root.id, a.id, b.id)
        child = await resolver.create_and_link_child_flow(b.id, "work detail")

        detail = await resolver.get_flow_detail(root.id)

        assert detail.id == root.id
        assert detail.version == 1
        assert [n.id for n in detail.nodes] == [a.id, b.id]
        assert detail.nodes[1].child_flow_id == child.id
        assert detail.nodes[1].metadata == {"owner": "ops"}
        assert len(detail.edges) == 1
        assert [c.id for c in detail.breadcrumbs] == [root.id]
        assert [c.id for c in detail.children] == [child.id]

    @pytest.mark.asyncio
    async def test_flow_detail_missing(self, resolver):
        with pytest.raises(EntityNotFoundError):
            await resolver.get_flow_detail("missing")

    @pytest.mark.asyncio
    async def test_export_diagram_uses_role_names(self, resolver, role_service, project_id):
        role = await role_service.create_role(project_id, "Clerk")
        flow = await resolver.create_flow(project_id, "flow")
        node = await resolver.add_node(flow.id, "Enter order", role_id=role.id)

        export = await resolver.export_diagram(flow.id)

        assert export.flow_id == flow.id
        assert export.flow_name == "flow"
        assert f'  {node.id}["Enter order [Clerk]"]\n' in export.mermaid
