"""
Order Lock Predicate

An order locks once it is completed AND paid AND its last update is at
least LOCK_WINDOW old. Nothing runs in the background: lock state is a
pure function of the stored order and the current time, recomputed on
every request and every dashboard poll.

Because the only input that moves is `now`, a locked order stays locked
until a mutation resets `updated_at`, and a locked order rejects all
mutations, so in practice it stays locked for good.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from tableside.entities import Order, OrderStatus, PaymentStatus

LOCK_WINDOW = timedelta(minutes=5)


class LockState(str, enum.Enum):
    NOT_APPLICABLE = "not_applicable"
    COUNTING_DOWN = "counting_down"
    LOCKED = "locked"


@dataclass(frozen=True)
class LockInfo:
    """
    Read-only lock projection attached to every order response.

    Attributes:
        state: not_applicable / counting_down / locked
        remaining: Time left before the lock, only while counting down
    """
    state: LockState
    remaining: Optional[timedelta] = None

    @property
    def locked(self) -> bool:
        return self.state == LockState.LOCKED

    @property
    def remaining_seconds(self) -> Optional[int]:
        if self.remaining is None:
            return None
        return int(self.remaining.total_seconds())

    @property
    def label(self) -> Optional[str]:
        """Dashboard text: "4m 12s until locked", "Locked" or None."""
        if self.state == LockState.LOCKED:
            return "Locked"
        if self.state == LockState.COUNTING_DOWN:
            total = int(self.remaining.total_seconds())
            minutes, seconds = divmod(total, 60)
            return f"{minutes}m {seconds}s until locked"
        return None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "locked": self.locked,
            "remaining_seconds": self.remaining_seconds,
            "label": self.label,
        }


def lock_applies(order: Order) -> bool:
    """True when both axes have reached their final values."""
    return (
        order.status == OrderStatus.COMPLETED
        and order.payment_status == PaymentStatus.PAID
    )


def is_locked(order: Order, now: datetime, window: timedelta = LOCK_WINDOW) -> bool:
    """
    Evaluate the lock predicate.

    Args:
        order: Order snapshot (status, payment status, updated_at)
        now: Current time (aware UTC)
        window: Grace period after the last update

    Returns:
        bool: True if the order can no longer be changed
    """
    return lock_applies(order) and (now - order.updated_at) >= window


def time_until_lock(
    order: Order,
    now: datetime,
    window: timedelta = LOCK_WINDOW,
) -> LockInfo:
    """
    Compute the countdown shown to polling clients.

    Returns:
        LockInfo: not_applicable unless completed and paid; locked once the
            window has elapsed; otherwise counting_down with the remainder
    """
    if not lock_applies(order):
        return LockInfo(LockState.NOT_APPLICABLE)

    elapsed = now - order.updated_at
    if elapsed >= window:
        return LockInfo(LockState.LOCKED)

    return LockInfo(LockState.COUNTING_DOWN, remaining=window - elapsed)
