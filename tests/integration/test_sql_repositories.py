"""Integration tests for the PostgreSQL repositories."""
import pytest
from uuid import uuid4
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from flow_catalog.catalog import CatalogService
from flow_catalog.catalog_import import CSV_TEMPLATE, import_csv
from flow_catalog.crud_matrix import load_crud_matrix
from flow_catalog.exceptions import ValidationError
from flow_catalog.flow_hierarchy import FlowHierarchyResolver
from flow_catalog.models import CatalogColumn, CatalogTable
from flow_catalog.repositories import (
    SqlBusinessFlowRepository,
    SqlColumnRepository,
    SqlCrudMappingRepository,
    SqlFlowEdgeRepository,
    SqlFlowNodeRepository,
    SqlRoleRepository,
    SqlTableRepository,
)
from flow_catalog.roles import RoleService
from flow_catalog.schemas import FlowNodeType
from flow_catalog.traceability import TraceabilityIndex


@pytest.fixture
def project():
    return str(uuid4())


@pytest.fixture
def sql_catalog(async_session):
    return CatalogService(SqlTableRepository(async_session), SqlColumnRepository(async_session))


@pytest.fixture
def sql_roles(async_session):
    return RoleService(SqlRoleRepository(async_session))


@pytest.fixture
def sql_resolver(async_session):
    return FlowHierarchyResolver(
        SqlBusinessFlowRepository(async_session),
        SqlFlowNodeRepository(async_session),
        SqlFlowEdgeRepository(async_session),
        SqlRoleRepository(async_session),
    )


@pytest.fixture
def sql_traceability(async_session):
    return TraceabilityIndex(
        SqlCrudMappingRepository(async_session),
        SqlColumnRepository(async_session),
        SqlRoleRepository(async_session),
        SqlBusinessFlowRepository(async_session),
        SqlFlowNodeRepository(async_session),
    )


@pytest.mark.integration
@pytest.mark.asyncio
class TestSchema:
    """Test that the tables exist with their constraints."""

    async def test_tables_created(self, async_session):
        result = await async_session.execute(text(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public'"
        ))
        tables = {row[0] for row in result}
        assert {
            "catalog_table", "catalog_column", "role", "business_flow",
            "flow_node", "flow_edge", "crud_mapping",
        } <= tables

    async def test_table_name_unique_per_project(self, async_session, project):
        repo = SqlTableRepository(async_session)
        await repo.save(CatalogTable.create(project, "users", id=str(uuid4())))
        with pytest.raises(IntegrityError):
            await repo.save(CatalogTable.create(project, "users", id=str(uuid4())))

    async def test_column_requires_table(self, async_session):
        repo = SqlColumnRepository(async_session)
        with pytest.raises(IntegrityError):
            await repo.save(CatalogColumn.create(str(uuid4()), "orphan", id=str(uuid4())))


@pytest.mark.integration
@pytest.mark.asyncio
class TestCatalogRepositories:

    async def test_columns_in_order(self, sql_catalog, project):
        users = await sql_catalog.create_table(project, "users")
        await sql_catalog.add_column(users.id, "email", order=1)
        await sql_catalog.add_column(users.id, "id", order=0, is_primary_key=True)

        columns = await sql_catalog.list_columns(users.id)
        assert [c.name for c in columns] == ["id", "email"]
        assert columns[0].is_nullable is False

    async def test_delete_table_cascades(self, sql_catalog, async_session, project):
        users = await sql_catalog.create_table(project, "users")
        email = await sql_catalog.add_column(users.id, "email")

        assert await sql_catalog.delete_table(users.id) is True
        assert await SqlColumnRepository(async_session).exists_by_id(email.id) is False

    async def test_csv_import(self, async_session, project):
        tables = SqlTableRepository(async_session)
        columns = SqlColumnRepository(async_session)

        result = await import_csv(CSV_TEMPLATE, project, tables, columns)

        assert result.success
        orders = await tables.find_by_name(project, "orders")
        assert await columns.count_by_table_id(orders.id) == 3


@pytest.mark.integration
@pytest.mark.asyncio
class TestRoleRepository:

    async def test_reorder(self, sql_roles, project):
        a = await sql_roles.create_role(project, "A")
        b = await sql_roles.create_role(project, "B")

        await sql_roles.reorder(project, [b.id, a.id])

        assert [r.name for r in await sql_roles.list_roles(project)] == ["B", "A"]

    async def test_invalid_reorder_keeps_order(self, sql_roles, project):
        a = await sql_roles.create_role(project, "A")
        await sql_roles.create_role(project, "B")

        with pytest.raises(ValidationError):
            await sql_roles.reorder(project, [a.id])

        assert [r.name for r in await sql_roles.list_roles(project)] == ["A", "B"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestFlowRepositories:

    async def test_hierarchy_round_trip(self, sql_resolver, project):
        root = await sql_resolver.create_flow(project, "Order to cash")
        node = await sql_resolver.add_node(
            root.id, "Invoice", type=FlowNodeType.PROCESS, metadata={"sla": "2d"}
        )
        child = await sql_resolver.create_and_link_child_flow(node.id)
        grandchild = await sql_resolver.create_child_flow(child, "Dunning")

        crumbs = await sql_resolver.resolve_breadcrumbs(grandchild)
        assert [c.name for c in crumbs] == ["Order to cash", "Invoice detail", "Dunning"]

        detail = await sql_resolver.get_flow_detail(root.id)
        assert detail.nodes[0].metadata == {"sla": "2d"}
        assert detail.nodes[0].child_flow_id == child.id
        assert await sql_resolver.find_orphaned_child_flows(project) == [grandchild]


@pytest.mark.integration
@pytest.mark.asyncio
class TestCrudMappingRepository:

    async def test_matrix_from_database(
        self, async_session, sql_catalog, sql_roles, sql_resolver, sql_traceability, project
    ):
        orders = await sql_catalog.create_table(project, "orders")
        status = await sql_catalog.add_column(orders.id, "status")
        total = await sql_catalog.add_column(orders.id, "total")
        clerk = await sql_roles.create_role(project, "clerk")
        flow = await sql_resolver.create_flow(project, "Fulfilment")
        ship = await sql_resolver.add_node(flow.id, "Ship")

        await sql_traceability.create(status.id, "UPDATE", clerk.id, how="A")
        await sql_traceability.create(
            total.id, "UPDATE", clerk.id, flow_id=flow.id, flow_node_id=ship.id, how="B"
        )

        assert len(await sql_traceability.by_column_and_operation(status.id, "UPDATE")) == 1
        assert [m.how for m in await sql_traceability.by_flow_node(ship.id)] == ["B"]

        matrix = await load_crud_matrix(
            project,
            SqlTableRepository(async_session),
            SqlColumnRepository(async_session),
            SqlRoleRepository(async_session),
            SqlCrudMappingRepository(async_session),
        )
        assert matrix.cell(orders.id, "UPDATE", clerk.id).text == "A, B"
