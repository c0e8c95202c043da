"""CRUD matrix: Table x Operation x Role cells aggregated from mapping facts.

A populated cell means the role performs the operation somewhere on the
table; its text merges each fact's ``how`` (else ``description``, else a
presence marker). An empty cell only means no fact is recorded.
"""

import logging
from typing import Dict, Iterable, List, Mapping

from .constants import MATRIX_PRESENCE_MARKER
from .models import CatalogColumn, CatalogTable, CrudMapping, Role
from .repositories.base import (
    ColumnRepository, CrudMappingRepository, RoleRepository, TableRepository
)
from .schemas import CRUD_OPERATION_ORDER, CrudMatrix, CrudMatrixCell, CrudMatrixRow, CrudOperation

logger = logging.getLogger(__name__)


def fact_text(mapping: CrudMapping) -> str:
    return mapping.how or mapping.description or MATRIX_PRESENCE_MARKER


def aggregate_cell(
    table_id: str,
    operation,
    role_id: str,
    mappings: Iterable[CrudMapping],
    column_tables: Mapping[str, str],
) -> CrudMatrixCell:
    """Merge every fact for one (table, operation, role) triple.

    Args:
        table_id: Table the cell belongs to.
        operation: CRUD operation of the cell.
        role_id: Role of the cell.
        mappings: Candidate facts, in the order they should be merged.
        column_tables: Column id to table id, used to place each fact on a table.

    Returns:
        The cell with texts joined by ", " (exact duplicates dropped) and the
        ids of every contributing fact.
    """
    operation = CrudOperation(operation)
    parts: List[str] = []
    mapping_ids: List[str] = []

    for mapping in mappings:
        if column_tables.get(mapping.column_id) != table_id:
            continue
        if mapping.operation != operation or mapping.role_id != role_id:
            continue
        text = fact_text(mapping)
        if text not in parts:
            parts.append(text)
        mapping_ids.append(mapping.id)

    return CrudMatrixCell(
        table_id=table_id,
        operation=operation,
        role_id=role_id,
        text=", ".join(parts),
        mapping_ids=mapping_ids,
    )


def build_crud_matrix(
    project_id: str,
    tables: Iterable[CatalogTable],
    columns: Iterable[CatalogColumn],
    roles: Iterable[Role],
    mappings: Iterable[CrudMapping],
) -> CrudMatrix:
    """Build every cell of a project's matrix in a single pass over the facts.

    Facts on columns outside ``tables`` (or on unknown roles) are ignored.
    """
    tables = list(tables)
    roles = list(roles)
    column_tables: Dict[str, str] = {c.id: c.table_id for c in columns}
    role_ids = [r.id for r in roles]

    rows: Dict[str, CrudMatrixRow] = {}
    parts: Dict[tuple, List[str]] = {}
    for table in tables:
        row = CrudMatrixRow(table_id=table.id, table_name=table.name)
        for role_id in role_ids:
            row.cells[role_id] = {
                op: CrudMatrixCell(table_id=table.id, operation=op, role_id=role_id)
                for op in CRUD_OPERATION_ORDER
            }
        rows[table.id] = row

    for mapping in mappings:
        row = rows.get(column_tables.get(mapping.column_id))
        if row is None or mapping.role_id not in row.cells:
            continue
        cell = row.cells[mapping.role_id][CrudOperation(mapping.operation)]
        key = (row.table_id, cell.operation, mapping.role_id)
        texts = parts.setdefault(key, [])
        text = fact_text(mapping)
        if text not in texts:
            texts.append(text)
            cell.text = ", ".join(texts)
        cell.mapping_ids.append(mapping.id)

    return CrudMatrix(
        project_id=project_id,
        role_ids=role_ids,
        rows=[rows[t.id] for t in tables],
    )


async def load_crud_matrix(
    project_id: str,
    tables: TableRepository,
    columns: ColumnRepository,
    roles: RoleRepository,
    mappings: CrudMappingRepository,
) -> CrudMatrix:
    """Fetch a project's catalog, roles and facts, then build its matrix."""
    project_tables = await tables.find_by_project_id(project_id)
    project_columns: List[CatalogColumn] = []
    for table in project_tables:
        project_columns.extend(await columns.find_by_table_id(table.id))
    project_roles = await roles.find_by_project_id(project_id)
    facts = await mappings.find_by_column_ids([c.id for c in project_columns])

    matrix = build_crud_matrix(project_id, project_tables, project_columns, project_roles, facts)
    logger.debug(
        f"Built CRUD matrix for project {project_id}: "
        f"{len(project_tables)} tables, {len(project_roles)} roles, {len(facts)} facts"
    )
    return matrix
