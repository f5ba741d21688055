"""Lock predicate and countdown."""

from datetime import timedelta

import pytest

from conftest import T0, items
from tableside.entities import Order, OrderStatus, PaymentStatus
from tableside.services.locking import (
    LOCK_WINDOW,
    LockState,
    is_locked,
    lock_applies,
    time_until_lock,
)


def make_order(status=OrderStatus.COMPLETED, payment=PaymentStatus.PAID, updated_at=T0) -> Order:
    line = items(("m1", 1, 10.0))
    return Order(
        table_id="t1",
        items=line,
        total=10.0,
        status=status,
        payment_status=payment,
        created_at=T0 - timedelta(minutes=30),
        updated_at=updated_at,
    )


def test_default_window_is_five_minutes():
    assert LOCK_WINDOW == timedelta(minutes=5)


def test_completed_and_paid_counts_down_until_window_elapses():
    order = make_order()

    info = time_until_lock(order, T0 + timedelta(minutes=4, seconds=59))
    assert info.state == LockState.COUNTING_DOWN
    assert info.remaining_seconds == 1
    assert info.label == "0m 1s until locked"
    assert not is_locked(order, T0 + timedelta(minutes=4, seconds=59))

    assert is_locked(order, T0 + timedelta(minutes=5))
    info = time_until_lock(order, T0 + timedelta(minutes=5))
    assert info.locked
    assert info.label == "Locked"
    assert info.remaining is None


def test_label_at_start_of_window():
    assert time_until_lock(make_order(), T0).label == "5m 0s until locked"


@pytest.mark.parametrize("status,payment", [
    (OrderStatus.COMPLETED, PaymentStatus.UNPAID),
    (OrderStatus.SERVED, PaymentStatus.PAID),
    (OrderStatus.CANCELLED, PaymentStatus.PAID),
    (OrderStatus.PENDING, PaymentStatus.UNPAID),
])
def test_lock_never_applies_unless_completed_and_paid(status, payment):
    order = make_order(status=status, payment=payment)
    much_later = T0 + timedelta(days=1)

    assert not lock_applies(order)
    assert not is_locked(order, much_later)
    info = time_until_lock(order, much_later)
    assert info.state == LockState.NOT_APPLICABLE
    assert info.label is None
    assert info.remaining_seconds is None


def test_once_locked_stays_locked_as_time_moves_forward():
    order = make_order()
    seen_locked = False
    for seconds in range(0, 900, 15):
        locked = is_locked(order, T0 + timedelta(seconds=seconds))
        if seen_locked:
            assert locked
        seen_locked = seen_locked or locked
    assert seen_locked


def test_custom_window():
    order = make_order()
    window = timedelta(seconds=30)

    assert not is_locked(order, T0 + timedelta(seconds=29), window)
    assert is_locked(order, T0 + timedelta(seconds=30), window)


def test_lock_info_to_dict():
    data = time_until_lock(make_order(), T0 + timedelta(minutes=1)).to_dict()

    assert data == {
        "state": "counting_down",
        "locked": False,
        "remaining_seconds": 240,
        "label": "4m 0s until locked",
    }


def test_six_minutes_after_completion_and_payment_is_locked():
    order = make_order(updated_at=T0 - timedelta(minutes=6))
    assert is_locked(order, T0)


def test_two_minutes_after_completion_and_payment_has_three_left():
    order = make_order(updated_at=T0 - timedelta(minutes=2))
    info = time_until_lock(order, T0)

    assert not info.locked
    assert info.remaining == timedelta(minutes=3)
