"""
Entity Store Abstract Base Class

Defines the persistence contract the ordering core depends on. Both the
in-memory store (development, tests) and the SQLAlchemy store (staging,
production) implement these methods, so the lifecycle engine and the
binder never know which one is active.

Design Pattern: Strategy Pattern
    - Storage can be swapped through ENV_MODE without touching the core
    - Tests run the full core against the in-memory implementation

Concurrency contract:
    `save_order` with an `expected_version` is a compare-and-swap. The
    store writes only if the stored order still has that version, bumps
    the version by one, and raises ConcurrentModification otherwise.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Optional

from tableside.entities import AccessCode, AccessCodeKind, Order, OrderStatus, Table


class BaseEntityStore(ABC):
    """
    Abstract base class for entity stores.

    Returned entities are independent copies: mutating one never changes
    stored state until it is saved back.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """
        Return the name of the storage backend.

        Returns:
            str: Backend name (e.g., "memory", "sql")
        """
        pass

    # =========================================================================
    # TABLES
    # =========================================================================

    @abstractmethod
    async def get_table(self, table_id: str) -> Optional[Table]:
        pass

    @abstractmethod
    async def get_table_by_number(self, number: str) -> Optional[Table]:
        pass

    @abstractmethod
    async def list_tables(self) -> list[Table]:
        """All tables ordered by table number."""
        pass

    @abstractmethod
    async def save_table(self, table: Table) -> Table:
        """
        Insert or replace a table.

        Raises:
            DuplicateTable: If another table already has this number
        """
        pass

    @abstractmethod
    async def set_table_active(self, table_id: str, is_active: bool) -> Optional[Table]:
        """Switch a table on or off without touching its other fields."""
        pass

    @abstractmethod
    async def set_table_access_code(self, table_id: str, code_id: str) -> Optional[Table]:
        """Point a table at an access code without touching its other fields."""
        pass

    @abstractmethod
    async def clear_table_access_code(self, table_id: str, code_id: str) -> bool:
        """
        Drop a table's access code reference if it still points at `code_id`.

        Returns:
            bool: True if the reference was cleared
        """
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def save_order(
        self,
        order: Order,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Persist an order.

        Args:
            order: The order to write
            expected_version: None to insert a new order; otherwise the
                version the caller read, checked against the stored one

        Returns:
            Order: The stored order (with its version bumped on update)

        Raises:
            ConcurrentModification: If the stored version differs
            NotFound: If updating an order that does not exist
        """
        pass

    @abstractmethod
    async def query_orders(
        self,
        status: Optional[OrderStatus] = None,
        table_id: Optional[str] = None,
    ) -> list[Order]:
        """Orders matching every given filter, newest first by created_at."""
        pass

    # =========================================================================
    # ACCESS CODES
    # =========================================================================

    @abstractmethod
    async def get_access_code(self, code_id: str) -> Optional[AccessCode]:
        pass

    @abstractmethod
    async def save_access_code(self, code: AccessCode) -> AccessCode:
        """
        Insert or replace an access code.

        Raises:
            BindingConflict: If a different code already holds the table or
                the global menu label
        """
        pass

    @abstractmethod
    async def delete_access_code(self, code_id: str) -> bool:
        """
        Delete an access code.

        Returns:
            bool: True if a record was removed
        """
        pass

    @abstractmethod
    async def query_access_codes(
        self,
        kind: Optional[AccessCodeKind] = None,
        target_id: Optional[str] = None,
        section: Optional[str] = None,
    ) -> list[AccessCode]:
        """Access codes matching every given filter, newest first."""
        pass

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        """Prepare the backend (create schema, warm pools)."""
        return None

    async def close(self) -> None:
        """Release backend resources."""
        return None

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the backend is reachable.

        Returns:
            bool: True if the store can serve requests
        """
        pass
