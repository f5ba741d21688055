"""
Order Query Service

Read-only views over orders for the staff dashboard: the status board and
the headline numbers. Dashboards poll these; nothing here mutates state.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from tableside.entities import Order, OrderStatus, PaymentStatus, utcnow
from tableside.services.locking import LOCK_WINDOW, is_locked
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)

BOARD_COLUMNS = (
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.SERVED,
    OrderStatus.COMPLETED,
)


def group_by_status(
    orders: list[Order],
    include_cancelled: bool = False,
) -> dict[OrderStatus, list[Order]]:
    """
    Partition orders into board columns, keeping their incoming order.

    Cancelled orders are dropped unless `include_cancelled` is set.
    """
    columns = list(BOARD_COLUMNS)
    if include_cancelled:
        columns.append(OrderStatus.CANCELLED)

    board: dict[OrderStatus, list[Order]] = {status: [] for status in columns}
    for order in orders:
        if order.status in board:
            board[order.status].append(order)
    return board


class OrderQueryService:
    """Filters and aggregates orders for dashboards."""

    def __init__(
        self,
        store: BaseEntityStore,
        clock: Callable[[], datetime] = utcnow,
        lock_window: timedelta = LOCK_WINDOW,
    ):
        self.store = store
        self.clock = clock
        self.lock_window = lock_window

    async def board(
        self,
        include_cancelled: bool = False,
        table_id: Optional[str] = None,
    ) -> dict[OrderStatus, list[Order]]:
        orders = await self.store.query_orders(table_id=table_id)
        return group_by_status(orders, include_cancelled=include_cancelled)

    async def summary(self) -> dict[str, Any]:
        """Per-status counts, revenue split by payment status, locked count."""
        orders = await self.store.query_orders()
        now = self.clock()

        counts = {status.value: 0 for status in OrderStatus}
        paid_revenue = 0.0
        outstanding = 0.0
        locked = 0

        for order in orders:
            counts[order.status.value] += 1
            if order.status == OrderStatus.CANCELLED:
                continue
            if order.payment_status == PaymentStatus.PAID:
                paid_revenue += order.total
            else:
                outstanding += order.total
            if is_locked(order, now, self.lock_window):
                locked += 1

        return {
            "total_orders": len(orders),
            "by_status": counts,
            "paid_revenue": round(paid_revenue, 2),
            "outstanding": round(outstanding, 2),
            "locked_orders": locked,
        }
