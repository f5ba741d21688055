"""
Table Service

Staff-side table management: creating tables, switching them on and off,
and looking them up for the guest entry point.
"""

import logging
from typing import Optional

from tableside.entities import Table
from tableside.exceptions import DuplicateTable, InvalidTable, NotFound
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)


class TableService:

    def __init__(self, store: BaseEntityStore):
        self.store = store

    async def create_table(
        self,
        number: str,
        capacity: int = 4,
        section: Optional[str] = None,
        is_active: bool = True,
    ) -> Table:
        """
        Create a table.

        Raises:
            InvalidTable: Blank number or capacity below 1
            DuplicateTable: A table with this number already exists
        """
        number = str(number).strip()
        if not number:
            raise InvalidTable("Table number is required")
        if capacity < 1:
            raise InvalidTable("Capacity must be at least 1")

        if await self.store.get_table_by_number(number):
            raise DuplicateTable(f"Table {number} already exists")

        table = await self.store.save_table(Table(
            number=number,
            capacity=capacity,
            section=section,
            is_active=is_active,
        ))
        logger.info(f"Table {table.number} created ({table.id})")
        return table

    async def get_table(self, table_id: str) -> Table:
        table = await self.store.get_table(table_id)
        if table is None:
            raise NotFound("Table", table_id)
        return table

    async def list_tables(self) -> list[Table]:
        return await self.store.list_tables()

    async def set_active(self, table_id: str, is_active: bool) -> Table:
        table = await self.store.set_table_active(table_id, is_active)
        if table is None:
            raise NotFound("Table", table_id)
        logger.info(f"Table {table.number} {'activated' if is_active else 'deactivated'}")
        return table
