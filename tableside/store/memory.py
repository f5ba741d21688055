"""
In-Memory Entity Store

Keeps tables, orders and access codes in dictionaries. Used in development
mode (ENV_MODE=development) and by the test suite.

Every read and write goes through deep copies and a single asyncio.Lock,
so the compare-and-swap on order versions behaves like the SQL store's
conditional UPDATE.
"""

import asyncio
import copy
import logging
from typing import Optional

from tableside.entities import (
    GLOBAL_MENU_SECTION,
    AccessCode,
    AccessCodeKind,
    Order,
    OrderStatus,
    Table,
)
from tableside.exceptions import (
    BindingConflict,
    ConcurrentModification,
    DuplicateTable,
    NotFound,
)
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)


def _same_binding(a: AccessCode, b: AccessCode) -> bool:
    """Both codes claim the same table, or both are the global menu."""
    if a.kind != b.kind:
        return False
    if a.kind == AccessCodeKind.TABLE:
        return a.target_id == b.target_id
    return a.section == b.section == GLOBAL_MENU_SECTION


class InMemoryEntityStore(BaseEntityStore):
    """
    Dictionary-backed entity store.

    Example:
        >>> store = InMemoryEntityStore()
        >>> await store.save_table(Table(number="1", id="t1"))
        >>> (await store.get_table("t1")).number
        '1'
    """

    def __init__(self):
        self._tables: dict[str, Table] = {}
        self._orders: dict[str, Order] = {}
        self._codes: dict[str, AccessCode] = {}
        self._lock = asyncio.Lock()

        logger.info("InMemoryEntityStore initialized")

    @property
    def backend_name(self) -> str:
        return "memory"

    # =========================================================================
    # TABLES
    # =========================================================================

    async def get_table(self, table_id: str) -> Optional[Table]:
        async with self._lock:
            return copy.deepcopy(self._tables.get(table_id))

    async def get_table_by_number(self, number: str) -> Optional[Table]:
        async with self._lock:
            for table in self._tables.values():
                if table.number == number:
                    return copy.deepcopy(table)
            return None

    async def list_tables(self) -> list[Table]:
        async with self._lock:
            tables = sorted(self._tables.values(), key=lambda t: t.number)
            return copy.deepcopy(tables)

    async def save_table(self, table: Table) -> Table:
        async with self._lock:
            for other in self._tables.values():
                if other.number == table.number and other.id != table.id:
                    raise DuplicateTable(f"Table {table.number} already exists")
            self._tables[table.id] = copy.deepcopy(table)
            return copy.deepcopy(table)

    async def set_table_active(self, table_id: str, is_active: bool) -> Optional[Table]:
        async with self._lock:
            table = self._tables.get(table_id)
            if table is None:
                return None
            table.is_active = is_active
            return copy.deepcopy(table)

    async def set_table_access_code(self, table_id: str, code_id: str) -> Optional[Table]:
        async with self._lock:
            table = self._tables.get(table_id)
            if table is None:
                return None
            table.access_code_id = code_id
            return copy.deepcopy(table)

    async def clear_table_access_code(self, table_id: str, code_id: str) -> bool:
        async with self._lock:
            table = self._tables.get(table_id)
            if table is None or table.access_code_id != code_id:
                return False
            table.access_code_id = None
            return True

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self._lock:
            return copy.deepcopy(self._orders.get(order_id))

    async def save_order(
        self,
        order: Order,
        expected_version: Optional[int] = None,
    ) -> Order:
        async with self._lock:
            stored = copy.deepcopy(order)

            if expected_version is None:
                stored.version = 1
            else:
                current = self._orders.get(order.id)
                if current is None:
                    raise NotFound("Order", order.id)
                if current.version != expected_version:
                    raise ConcurrentModification(order.id, expected_version)
                stored.version = expected_version + 1

            self._orders[stored.id] = stored
            return copy.deepcopy(stored)

    async def query_orders(
        self,
        status: Optional[OrderStatus] = None,
        table_id: Optional[str] = None,
    ) -> list[Order]:
        async with self._lock:
            orders = [
                order for order in self._orders.values()
                if (status is None or order.status == status)
                and (table_id is None or order.table_id == table_id)
            ]
            orders.sort(key=lambda o: o.created_at, reverse=True)
            return copy.deepcopy(orders)

    # =========================================================================
    # ACCESS CODES
    # =========================================================================

    async def get_access_code(self, code_id: str) -> Optional[AccessCode]:
        async with self._lock:
            return copy.deepcopy(self._codes.get(code_id))

    async def save_access_code(self, code: AccessCode) -> AccessCode:
        async with self._lock:
            for other in self._codes.values():
                if other.id != code.id and _same_binding(other, code):
                    raise BindingConflict(f"{code.section} already has an access code")
            self._codes[code.id] = copy.deepcopy(code)
            return copy.deepcopy(code)

    async def delete_access_code(self, code_id: str) -> bool:
        async with self._lock:
            return self._codes.pop(code_id, None) is not None

    async def query_access_codes(
        self,
        kind: Optional[AccessCodeKind] = None,
        target_id: Optional[str] = None,
        section: Optional[str] = None,
    ) -> list[AccessCode]:
        async with self._lock:
            codes = [
                code for code in self._codes.values()
                if (kind is None or code.kind == kind)
                and (target_id is None or code.target_id == target_id)
                and (section is None or code.section == section)
            ]
            codes.sort(key=lambda c: c.created_at, reverse=True)
            return copy.deepcopy(codes)

    async def health_check(self) -> bool:
        return True
