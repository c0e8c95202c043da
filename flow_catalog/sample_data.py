"""Sample catalog, roles, flows and CRUD facts for development databases."""

import logging
from typing import Dict

from .catalog import CatalogService
from .catalog_import import CSV_TEMPLATE, import_csv
from .flow_hierarchy import FlowHierarchyResolver
from .roles import RoleService
from .schemas import CrudOperation, FlowNodeType, RoleType
from .traceability import TraceabilityIndex

logger = logging.getLogger(__name__)

SAMPLE_ROLES = [
    ("customer", RoleType.HUMAN, "#3B82F6"),
    ("warehouse", RoleType.HUMAN, "#10B981"),
    ("billing", RoleType.SYSTEM, "#F59E0B"),
]


async def load_sample_data(
    project_id: str,
    catalog: CatalogService,
    roles: RoleService,
    flows: FlowHierarchyResolver,
    traceability: TraceabilityIndex,
) -> Dict[str, int]:
    """Populate a project with the order lifecycle example.

    Safe to call on a project that already has the sample tables: the CSV
    import reuses them. Roles that already exist are reused as well, but the
    flow and its facts are created again on every call.
    """
    result = await import_csv(CSV_TEMPLATE, project_id, catalog.tables, catalog.columns)
    if not result.success:
        logger.warning(f"Sample catalog imported with errors: {result.errors}")

    orders = await catalog.tables.find_by_name(project_id, "orders")
    orders.update_description("Orders placed by users")
    await catalog.tables.save(orders)
    status = await catalog.columns.find_by_name(orders.id, "status")
    if status is None:
        status = await catalog.add_column(orders.id, "status", default_value="pending")

    role_ids = {}
    for name, role_type, color in SAMPLE_ROLES:
        role = await roles.roles.find_by_name(project_id, name)
        if role is None:
            role = await roles.create_role(project_id, name, type=role_type, color=color)
        role_ids[name] = role.id

    flow = await flows.create_flow(project_id, "order-processing", "From checkout to delivery")
    start = await flows.add_node(flow.id, "Start", type=FlowNodeType.START)
    create_order = await flows.add_node(flow.id, "create-order", role_id=role_ids["customer"])
    paid = await flows.add_node(flow.id, "Payment OK?", type=FlowNodeType.DECISION,
                                role_id=role_ids["billing"])
    ship = await flows.add_node(flow.id, "ship", role_id=role_ids["warehouse"])
    end = await flows.add_node(flow.id, "End", type=FlowNodeType.END)
    await flows.add_edge(flow.id, start.id, create_order.id)
    await flows.add_edge(flow.id, create_order.id, paid.id)
    await flows.add_edge(flow.id, paid.id, ship.id, label="yes")
    await flows.add_edge(flow.id, paid.id, create_order.id, label="no")
    await flows.add_edge(flow.id, ship.id, end.id)

    packing = await flows.create_and_link_child_flow(ship.id, "Packing", "Pick and pack the items")
    pick = await flows.add_node(packing.id, "Pick items", role_id=role_ids["warehouse"])
    pack = await flows.add_node(packing.id, "Pack box", role_id=role_ids["warehouse"])
    await flows.add_edge(packing.id, pick.id, pack.id)

    await traceability.create(
        status.id, CrudOperation.CREATE, role_ids["customer"],
        flow_id=flow.id, flow_node_id=create_order.id, how='default "pending"',
    )
    await traceability.create(
        status.id, CrudOperation.READ, role_ids["billing"],
        flow_id=flow.id, flow_node_id=paid.id, description="Checks the order is unpaid",
    )
    await traceability.create(
        status.id, CrudOperation.UPDATE, role_ids["warehouse"],
        flow_id=flow.id, flow_node_id=ship.id, how='set "shipped"',
    )

    summary = {
        "tables_created": result.tables_created,
        "columns_created": result.columns_created,
        "roles": len(role_ids),
        "flows": 2,
        "mappings": 3,
    }
    logger.info(f"Loaded sample data into project {project_id}: {summary}")
    return summary
