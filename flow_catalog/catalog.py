"""
Catalog service: tables and their columns.

Table names are unique within a project and column names unique within a
table. Deleting a table removes its columns; nothing else cascades.
"""

import logging
from typing import Any, Iterable, List, Optional

from .exceptions import EntityAlreadyExistsError, EntityNotFoundError
from .models import CatalogColumn, CatalogTable
from .repositories.base import ColumnRepository, TableRepository
from .schemas import DataType

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, tables: TableRepository, columns: ColumnRepository):
        self.tables = tables
        self.columns = columns

    async def get_table(self, table_id: str) -> CatalogTable:
        table = await self.tables.find_by_id(table_id)
        if table is None:
            raise EntityNotFoundError("Table", table_id)
        return table

    async def get_column(self, column_id: str) -> CatalogColumn:
        column = await self.columns.find_by_id(column_id)
        if column is None:
            raise EntityNotFoundError("Column", column_id)
        return column

    async def list_tables(self, project_id: str) -> List[CatalogTable]:
        return await self.tables.find_by_project_id(project_id)

    async def list_columns(self, table_id: str) -> List[CatalogColumn]:
        return await self.columns.find_by_table_id(table_id)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    async def create_table(
        self,
        project_id: str,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> CatalogTable:
        if await self.tables.exists_by_name(project_id, name):
            raise EntityAlreadyExistsError("Table", "name", name)
        table = CatalogTable.create(
            project_id=project_id,
            name=name,
            display_name=display_name,
            description=description,
            tags=tags,
            id=self.tables.generate_id(),
        )
        return await self.tables.save(table)

    async def update_table(
        self,
        table_id: str,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> CatalogTable:
        table = await self.get_table(table_id)
        if name is not None and name != table.name:
            if await self.tables.exists_by_name(table.project_id, name):
                raise EntityAlreadyExistsError("Table", "name", name)
        with table.atomic_update():
            if name is not None:
                table.update_name(name)
            if display_name is not None:
                table.update_display_name(display_name)
            if description is not None:
                table.update_description(description)
            if tags is not None:
                table.replace_tags(tags)
        return await self.tables.save(table)

    async def delete_table(self, table_id: str) -> bool:
        """Delete a table together with its columns."""
        removed_columns = await self.columns.delete_by_table_id(table_id)
        removed = await self.tables.delete(table_id)
        if removed:
            logger.info(f"Deleted table {table_id} and {removed_columns} columns")
        return removed

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    async def add_column(
        self,
        table_id: str,
        name: str,
        order: Optional[int] = None,
        **attributes: Any,
    ) -> CatalogColumn:
        """Add a column; without an explicit order it goes after the existing ones.

        ``attributes`` are the optional keyword arguments of ``CatalogColumn.create``.
        """
        await self.get_table(table_id)
        if await self.columns.exists_by_name(table_id, name):
            raise EntityAlreadyExistsError("Column", "name", name)
        if order is None:
            order = await self.columns.count_by_table_id(table_id)
        column = CatalogColumn.create(
            table_id=table_id,
            name=name,
            order=order,
            id=self.columns.generate_id(),
            **attributes,
        )
        return await self.columns.save(column)

    async def update_column(
        self,
        column_id: str,
        name: Optional[str] = None,
        display_name: Optional[str] = None,
        data_type: Optional[DataType] = None,
        description: Optional[str] = None,
        is_primary_key: Optional[bool] = None,
        is_nullable: Optional[bool] = None,
        is_unique: Optional[bool] = None,
        default_value: Optional[str] = None,
        foreign_key_table: Optional[str] = None,
        foreign_key_column: Optional[str] = None,
        order: Optional[int] = None,
    ) -> CatalogColumn:
        column = await self.get_column(column_id)
        if name is not None and name != column.name:
            if await self.columns.exists_by_name(column.table_id, name):
                raise EntityAlreadyExistsError("Column", "name", name)
        with column.atomic_update():
            if name is not None:
                column.update_name(name)
            if display_name is not None:
                column.update_display_name(display_name)
            if data_type is not None:
                column.update_data_type(data_type)
            if description is not None:
                column.update_description(description)
            if is_primary_key is not None:
                column.set_primary_key(is_primary_key)
            if is_nullable is not None:
                column.set_nullable(is_nullable)
            if is_unique is not None:
                column.set_unique(is_unique)
            if default_value is not None:
                column.update_default_value(default_value)
            if foreign_key_table is not None or foreign_key_column is not None:
                # Empty strings clear the reference
                column.set_foreign_key(
                    column.foreign_key_table if foreign_key_table is None else foreign_key_table,
                    column.foreign_key_column if foreign_key_column is None else foreign_key_column,
                )
            if order is not None:
                column.update_order(order)

        return await self.columns.save(column)

    async def delete_column(self, column_id: str) -> bool:
        """Delete one column. CRUD facts on it are kept and resolve to no column."""
        return await self.columns.delete(column_id)
