"""
Order Lifecycle Engine

Owns the two state axes of an order and the rules between them:

    status:          pending → preparing → served → completed
                     (any non-terminal) → cancelled
    payment_status:  unpaid ⇄ paid

Status and payment are independent, but the lock is their conjunction
(completed AND paid AND past the grace window). Every mutation re-reads
the stored order, re-checks lock and transition against that fresh copy,
and writes back with a compare-and-swap on the order version. A lost race
surfaces as ConcurrentModification; nothing is retried here.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from tableside.entities import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    calculate_total,
    utcnow,
)
from tableside.exceptions import (
    EmptyOrder,
    InvalidTable,
    InvalidTransition,
    Locked,
    NotFound,
    StaffRequired,
)
from tableside.services.locking import LOCK_WINDOW, LockInfo, is_locked, time_until_lock
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)

# Current status -> statuses it may move to
VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED}),
    OrderStatus.SERVED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),  # terminal
    OrderStatus.CANCELLED: frozenset(),  # terminal
}

# Moving into these records who served the order
STAFF_STATUSES = frozenset({OrderStatus.SERVED, OrderStatus.COMPLETED})


def is_valid_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """True if `new` is reachable from `current` in one step."""
    return new in VALID_TRANSITIONS.get(current, frozenset())


class OrderLifecycleEngine:
    """
    Validates and applies order status and payment changes.

    Attributes:
        store: Entity store holding tables and orders
        clock: Returns the current aware UTC time (injectable for tests)
        lock_window: Grace period before a completed, paid order locks

    Example:
        >>> engine = OrderLifecycleEngine(store)
        >>> order = await engine.create_order("t1", [OrderItem("m1", 2, 100.0)])
        >>> order = await engine.set_status(order.id, OrderStatus.PREPARING)
    """

    def __init__(
        self,
        store: BaseEntityStore,
        clock: Callable[[], datetime] = utcnow,
        lock_window: timedelta = LOCK_WINDOW,
    ):
        self.store = store
        self.clock = clock
        self.lock_window = lock_window

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_order(
        self,
        table_id: str,
        items: Iterable[OrderItem],
        customer: Optional[Customer] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Place a new order against a table.

        Unit prices are taken as given and frozen on the order, so later
        menu price changes never alter historical totals.

        Raises:
            InvalidTable: If the table does not exist
            EmptyOrder: If there are no items or a quantity is below 1
        """
        table = await self.store.get_table(table_id)
        if table is None:
            raise InvalidTable(f"Table {table_id} does not exist")

        items = list(items)
        if not items:
            raise EmptyOrder("An order needs at least one item")
        for item in items:
            if item.quantity < 1:
                raise EmptyOrder(
                    f"Quantity for item {item.menu_item_id} must be at least 1"
                )

        now = self.clock()
        order = Order(
            table_id=table.id,
            items=items,
            total=calculate_total(items),
            customer=customer or Customer(),
            notes=notes,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            created_at=now,
            updated_at=now,
        )

        order = await self.store.save_order(order)
        logger.info(
            f"Order #{order.id} created for table {table.number} "
            f"({len(items)} items, total {order.total:.2f})"
        )
        return order

    # =========================================================================
    # READS
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFound("Order", order_id)
        return order

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        table_id: Optional[str] = None,
    ) -> list[Order]:
        """Orders matching all given filters, newest first."""
        return await self.store.query_orders(status=status, table_id=table_id)

    def lock_info(self, order: Order, now: Optional[datetime] = None) -> LockInfo:
        return time_until_lock(order, now or self.clock(), self.lock_window)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def _load_unlocked(self, order_id: str) -> tuple[Order, datetime]:
        order = await self.get_order(order_id)
        now = self.clock()
        if is_locked(order, now, self.lock_window):
            logger.warning(f"Rejected change to locked order #{order_id}")
            raise Locked(order_id)
        return order, now

    async def set_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        acting_staff_id: Optional[str] = None,
    ) -> Order:
        """
        Move an order along the status graph.

        Args:
            order_id: Order to change
            new_status: Target status
            acting_staff_id: Staff member making the change; required when
                moving into served or completed

        Raises:
            NotFound: No such order
            Locked: The order is locked
            InvalidTransition: `new_status` is not reachable from the current status
            StaffRequired: Serving/completing without a staff identity
            ConcurrentModification: The order changed since it was read
        """
        new_status = OrderStatus(new_status)
        order, now = await self._load_unlocked(order_id)

        if not is_valid_transition(order.status, new_status):
            logger.warning(
                f"Rejected transition for order #{order_id}: "
                f"{order.status.value} → {new_status.value}"
            )
            raise InvalidTransition(order.status.value, new_status.value)

        if new_status in STAFF_STATUSES:
            if not acting_staff_id:
                raise StaffRequired(
                    f"Marking an order {new_status.value} requires a staff member"
                )
            order.served_by = acting_staff_id

        previous = order.status
        expected_version = order.version
        order.status = new_status
        order.updated_at = now

        order = await self.store.save_order(order, expected_version=expected_version)
        logger.info(
            f"Order #{order_id} status {previous.value} → {new_status.value}"
            + (f" by {acting_staff_id}" if acting_staff_id else "")
        )
        return order

    async def set_payment_status(
        self,
        order_id: str,
        new_payment_status: PaymentStatus,
    ) -> Order:
        """
        Annotate an order as paid or unpaid.

        There is no ordering between the two values; the only guard is the lock.

        Raises:
            NotFound: No such order
            Locked: The order is locked
            ConcurrentModification: The order changed since it was read
        """
        new_payment_status = PaymentStatus(new_payment_status)
        order, now = await self._load_unlocked(order_id)

        expected_version = order.version
        order.payment_status = new_payment_status
        order.updated_at = now

        order = await self.store.save_order(order, expected_version=expected_version)
        logger.info(f"Order #{order_id} payment → {new_payment_status.value}")
        return order
