"""
Bulk import of tables and columns from CSV text.

Each row describes one column. Tables are created on first sight and reused
afterwards (including tables that already exist in the project); columns that
already exist are skipped. Failures are collected per row and the import keeps
going, so a failed import may still have written some rows.
"""

import csv
import logging
from typing import Dict, List, Optional

from .constants import CSV_REQUIRED_HEADERS, CSV_TEMPLATE_HEADERS
from .exceptions import DomainError
from .models import CatalogColumn, CatalogTable
from .repositories.base import ColumnRepository, TableRepository
from .schemas import CsvImportResult, DataType

logger = logging.getLogger(__name__)

CSV_TEMPLATE = """table_name,column_name,display_name,data_type,description,is_primary_key,is_foreign_key,is_nullable,is_unique,default_value,foreign_key_table,foreign_key_column
users,id,User ID,UUID,Unique identifier of the user,true,false,false,true,,,
users,email,Email,STRING,Email address of the user,false,false,false,true,,,
users,name,Name,STRING,Display name of the user,false,false,true,false,,,
users,created_at,Created at,DATETIME,When the record was created,false,false,false,false,,,
orders,id,Order ID,UUID,Unique identifier of the order,true,false,false,true,,,
orders,user_id,User ID,UUID,User who placed the order,false,true,false,false,,users,id
orders,total_amount,Total amount,INTEGER,Order total,false,false,false,false,0,,"""


def parse_csv_line(line: str) -> List[str]:
    """Split one CSV line; quoted fields may contain commas and doubled quotes."""
    rows = list(csv.reader([line], skipinitialspace=True))
    if not rows:
        return []
    return [value.strip() for value in rows[0]]


def csv_template() -> Dict[str, object]:
    return {
        "template": CSV_TEMPLATE,
        "headers": list(CSV_TEMPLATE_HEADERS),
        "data_types": [t.value for t in DataType],
    }


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _optional(value: Optional[str]) -> Optional[str]:
    return value or None


async def import_csv(
    csv_text: str,
    project_id: str,
    tables: TableRepository,
    columns: ColumnRepository,
) -> CsvImportResult:
    """Create the tables and columns described by ``csv_text``.

    Row numbers in error messages are 1-based and count the header line.
    """
    errors: List[str] = []
    tables_created = 0
    columns_created = 0
    table_ids: Dict[str, str] = {}

    lines = (csv_text or "").strip().split("\n")
    if len(lines) < 2:
        return CsvImportResult(success=False, errors=["CSV has no data rows"])

    headers = parse_csv_line(lines[0])
    for required in CSV_REQUIRED_HEADERS:
        if required not in headers:
            return CsvImportResult(success=False, errors=[f'Missing required header "{required}"'])

    for i, raw_line in enumerate(lines[1:], start=1):
        line = raw_line.strip()
        if not line:
            continue

        values = parse_csv_line(line)
        row = {h: (values[idx] if idx < len(values) else "") for idx, h in enumerate(headers)}
        table_name = row["table_name"]
        column_name = row["column_name"]

        if not table_name or not column_name:
            errors.append(f"Row {i + 1}: table name or column name is empty")
            continue

        if table_name not in table_ids:
            try:
                existing = await tables.find_by_name(project_id, table_name)
                if existing is not None:
                    table_ids[table_name] = existing.id
                else:
                    table = CatalogTable.create(
                        project_id=project_id,
                        name=table_name,
                        display_name=row.get("table_display_name") or table_name,
                        description=_optional(row.get("table_description")),
                        id=tables.generate_id(),
                    )
                    table = await tables.save(table)
                    table_ids[table_name] = table.id
                    tables_created += 1
            except DomainError as e:
                errors.append(f'Row {i + 1}: failed to create table "{table_name}": {e.message}')
                continue

        table_id = table_ids[table_name]
        try:
            if await columns.exists_by_name(table_id, column_name):
                continue
            column = CatalogColumn.create(
                table_id=table_id,
                name=column_name,
                display_name=row.get("display_name") or column_name,
                data_type=DataType.parse(row.get("data_type")),
                description=_optional(row.get("description")),
                is_primary_key=_flag(row.get("is_primary_key")),
                # Without an explicit "true" the flag follows the reference pair
                is_foreign_key=True if _flag(row.get("is_foreign_key")) else None,
                is_nullable=(row.get("is_nullable") or "").strip().lower() != "false",
                is_unique=_flag(row.get("is_unique")),
                default_value=_optional(row.get("default_value")),
                foreign_key_table=_optional(row.get("foreign_key_table")),
                foreign_key_column=_optional(row.get("foreign_key_column")),
                order=await columns.count_by_table_id(table_id),
                id=columns.generate_id(),
            )
            await columns.save(column)
            columns_created += 1
        except DomainError as e:
            errors.append(f'Row {i + 1}: failed to create column "{column_name}": {e.message}')

    logger.info(
        f"CSV import into project {project_id}: {tables_created} tables, "
        f"{columns_created} columns, {len(errors)} errors"
    )
    return CsvImportResult(
        success=not errors,
        tables_created=tables_created,
        columns_created=columns_created,
        errors=errors,
    )
