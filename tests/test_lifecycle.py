"""Order lifecycle engine: creation, transitions, payment and the lock."""

import itertools

import pytest

from conftest import items
from tableside.entities import Customer, OrderStatus, PaymentStatus, Table
from tableside.exceptions import (
    ConcurrentModification,
    EmptyOrder,
    InvalidTable,
    InvalidTransition,
    Locked,
    NotFound,
    StaffRequired,
)
from tableside.services.lifecycle import VALID_TRANSITIONS, is_valid_transition
from tableside.services.locking import LockState

STAFF = "staff-anna"

# Shortest path from pending to each status
PATHS = {
    OrderStatus.PENDING: [],
    OrderStatus.PREPARING: [OrderStatus.PREPARING],
    OrderStatus.SERVED: [OrderStatus.PREPARING, OrderStatus.SERVED],
    OrderStatus.COMPLETED: [OrderStatus.PREPARING, OrderStatus.SERVED, OrderStatus.COMPLETED],
    OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
}

LEGAL = {
    (OrderStatus.PENDING, OrderStatus.PREPARING),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PREPARING, OrderStatus.SERVED),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    (OrderStatus.SERVED, OrderStatus.COMPLETED),
    (OrderStatus.SERVED, OrderStatus.CANCELLED),
}


async def place(engine, table_id="t1", **kwargs):
    return await engine.create_order(table_id, items(("m1", 2, 100.0)), **kwargs)


async def advance_to(engine, order_id, status):
    order = None
    for step in PATHS[status]:
        order = await engine.set_status(order_id, step, acting_staff_id=STAFF)
    return order


# =============================================================================
# CREATION
# =============================================================================

async def test_create_order_snapshots_prices_and_starts_pending(engine, table, clock):
    order = await engine.create_order(
        "t1",
        items(("m1", 2, 100.0), ("m2", 1, 4.5)),
        customer=Customer(name="Jane", email="jane@example.com"),
        notes="No onions",
    )

    assert order.total == 204.5
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.UNPAID
    assert order.served_by is None
    assert order.version == 1
    assert order.created_at == clock.now
    assert order.updated_at == clock.now
    assert order.customer.name == "Jane"

    stored = await engine.get_order(order.id)
    assert stored.total == 204.5
    assert [i.unit_price for i in stored.items] == [100.0, 4.5]


async def test_create_order_defaults_to_guest(engine, table):
    order = await place(engine)
    assert order.customer.name == "Guest"
    assert engine.lock_info(order).state == LockState.NOT_APPLICABLE


async def test_create_order_for_unknown_table(engine, table):
    with pytest.raises(InvalidTable):
        await engine.create_order("nope", items(("m1", 1, 1.0)))


async def test_unknown_table_is_reported_before_empty_items(engine):
    with pytest.raises(InvalidTable):
        await engine.create_order("nope", [])


async def test_create_order_without_items(engine, table):
    with pytest.raises(EmptyOrder):
        await engine.create_order("t1", [])


async def test_create_order_with_zero_quantity(engine, table):
    with pytest.raises(EmptyOrder):
        await engine.create_order("t1", items(("m1", 1, 5.0), ("m2", 0, 5.0)))
    assert await engine.list_orders() == []


async def test_inactive_table_still_accepts_orders(engine, store):
    await store.save_table(Table(number="9", id="t9", is_active=False))
    order = await place(engine, table_id="t9")
    assert order.table_id == "t9"


# =============================================================================
# TRANSITION TABLE
# =============================================================================

@pytest.mark.parametrize(
    "current,new",
    list(itertools.product(OrderStatus, OrderStatus)),
    ids=lambda s: s.value,
)
def test_transition_table(current, new):
    assert is_valid_transition(current, new) == ((current, new) in LEGAL)


def test_terminal_statuses_have_no_exits():
    assert VALID_TRANSITIONS[OrderStatus.COMPLETED] == frozenset()
    assert VALID_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


@pytest.mark.parametrize("current,new", sorted(LEGAL), ids=lambda s: s.value)
async def test_every_legal_edge_is_accepted(engine, table, current, new):
    order = await place(engine)
    await advance_to(engine, order.id, current)

    updated = await engine.set_status(order.id, new, acting_staff_id=STAFF)

    assert updated.status == new


@pytest.mark.parametrize(
    "current,new",
    [pair for pair in itertools.product(OrderStatus, OrderStatus) if pair not in LEGAL],
    ids=lambda s: s.value,
)
async def test_every_illegal_edge_is_rejected(engine, table, current, new):
    order = await place(engine)
    await advance_to(engine, order.id, current)
    before = await engine.get_order(order.id)

    with pytest.raises(InvalidTransition):
        await engine.set_status(order.id, new, acting_staff_id=STAFF)

    after = await engine.get_order(order.id)
    assert after.status == current
    assert after.version == before.version


async def test_set_status_on_missing_order(engine):
    with pytest.raises(NotFound):
        await engine.set_status("missing", OrderStatus.PREPARING)


async def test_set_status_accepts_plain_strings(engine, table):
    order = await place(engine)
    updated = await engine.set_status(order.id, "preparing")
    assert updated.status == OrderStatus.PREPARING


# =============================================================================
# STAFF ATTRIBUTION
# =============================================================================

async def test_serving_requires_staff_and_records_it(engine, table):
    order = await place(engine)
    await engine.set_status(order.id, OrderStatus.PREPARING)

    with pytest.raises(StaffRequired):
        await engine.set_status(order.id, OrderStatus.SERVED)

    unchanged = await engine.get_order(order.id)
    assert unchanged.status == OrderStatus.PREPARING
    assert unchanged.served_by is None

    served = await engine.set_status(order.id, OrderStatus.SERVED, acting_staff_id=STAFF)
    assert served.status == OrderStatus.SERVED
    assert served.served_by == STAFF


async def test_completing_requires_staff(engine, table):
    order = await place(engine)
    await advance_to(engine, order.id, OrderStatus.SERVED)

    with pytest.raises(StaffRequired):
        await engine.set_status(order.id, OrderStatus.COMPLETED)

    completed = await engine.set_status(order.id, OrderStatus.COMPLETED, acting_staff_id="staff-ben")
    assert completed.served_by == "staff-ben"


async def test_preparing_and_cancelling_need_no_staff(engine, table):
    order = await place(engine)
    prepared = await engine.set_status(order.id, OrderStatus.PREPARING)
    assert prepared.served_by is None

    cancelled = await engine.set_status(order.id, OrderStatus.CANCELLED)
    assert cancelled.status == OrderStatus.CANCELLED


async def test_each_mutation_bumps_version_and_updated_at(engine, table, clock):
    order = await place(engine)
    clock.advance(seconds=30)

    updated = await engine.set_status(order.id, OrderStatus.PREPARING)

    assert updated.version == order.version + 1
    assert updated.updated_at == clock.now
    assert updated.created_at == order.created_at


# =============================================================================
# PAYMENT
# =============================================================================

async def test_payment_toggles_freely_before_lock(engine, table):
    order = await place(engine)

    paid = await engine.set_payment_status(order.id, PaymentStatus.PAID)
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.status == OrderStatus.PENDING

    unpaid = await engine.set_payment_status(order.id, "unpaid")
    assert unpaid.payment_status == PaymentStatus.UNPAID


async def test_payment_on_missing_order(engine):
    with pytest.raises(NotFound):
        await engine.set_payment_status("missing", PaymentStatus.PAID)


async def test_cancelled_order_can_still_be_marked_paid(engine, table):
    order = await place(engine)
    await engine.set_status(order.id, OrderStatus.CANCELLED)

    paid = await engine.set_payment_status(order.id, PaymentStatus.PAID)

    assert paid.payment_status == PaymentStatus.PAID
    assert engine.lock_info(paid).state == LockState.NOT_APPLICABLE


# =============================================================================
# LOCK
# =============================================================================

async def complete_and_pay(engine, table_id="t1"):
    order = await place(engine, table_id=table_id)
    await advance_to(engine, order.id, OrderStatus.COMPLETED)
    return await engine.set_payment_status(order.id, PaymentStatus.PAID)


async def test_locked_order_rejects_status_and_payment_changes(engine, table, clock):
    order = await complete_and_pay(engine)
    clock.advance(minutes=5)

    assert engine.lock_info(order).locked

    with pytest.raises(Locked):
        await engine.set_payment_status(order.id, PaymentStatus.UNPAID)
    with pytest.raises(Locked):
        await engine.set_status(order.id, OrderStatus.CANCELLED, acting_staff_id=STAFF)

    stored = await engine.get_order(order.id)
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.version == order.version


async def test_lock_is_checked_before_transition_validity(engine, table, clock):
    order = await complete_and_pay(engine)
    clock.advance(minutes=10)

    # completed -> pending is also illegal; the lock wins
    with pytest.raises(Locked):
        await engine.set_status(order.id, OrderStatus.PENDING)


async def test_unpaying_inside_the_window_cancels_the_countdown(engine, table, clock):
    order = await complete_and_pay(engine)
    clock.advance(minutes=4)

    unpaid = await engine.set_payment_status(order.id, PaymentStatus.UNPAID)
    clock.advance(minutes=30)

    assert engine.lock_info(unpaid).state == LockState.NOT_APPLICABLE


async def test_any_update_restarts_the_window(engine, table, clock):
    order = await complete_and_pay(engine)
    clock.advance(minutes=4)

    repaid = await engine.set_payment_status(order.id, PaymentStatus.PAID)
    clock.advance(minutes=2)

    info = engine.lock_info(repaid)
    assert info.state == LockState.COUNTING_DOWN
    assert info.remaining_seconds == 180


async def test_completed_but_unpaid_never_locks(engine, table, clock):
    order = await place(engine)
    await advance_to(engine, order.id, OrderStatus.COMPLETED)
    clock.advance(hours=3)

    paid = await engine.set_payment_status(order.id, PaymentStatus.PAID)
    assert engine.lock_info(paid).state == LockState.COUNTING_DOWN


# =============================================================================
# CONCURRENCY
# =============================================================================

async def test_stale_write_is_rejected(engine, store, table):
    order = await place(engine)
    stale = await store.get_order(order.id)

    await engine.set_status(order.id, OrderStatus.PREPARING)

    stale.status = OrderStatus.CANCELLED
    with pytest.raises(ConcurrentModification):
        await store.save_order(stale, expected_version=stale.version)

    assert (await store.get_order(order.id)).status == OrderStatus.PREPARING


async def test_lost_race_surfaces_as_concurrent_modification(engine, store, table):
    order = await place(engine)
    original_get = store.get_order

    async def read_then_someone_else_writes(order_id):
        snapshot = await original_get(order_id)
        competing = await original_get(order_id)
        competing.status = OrderStatus.CANCELLED
        await store.save_order(competing, expected_version=competing.version)
        return snapshot

    store.get_order = read_then_someone_else_writes

    with pytest.raises(ConcurrentModification):
        await engine.set_status(order.id, OrderStatus.PREPARING)

    stored = await original_get(order.id)
    assert stored.status == OrderStatus.CANCELLED
    assert stored.version == 2


# =============================================================================
# LISTING
# =============================================================================

async def test_list_orders_newest_first_with_filters(engine, store, table, clock):
    await store.save_table(Table(number="2", id="t2"))

    first = await place(engine)
    clock.advance(minutes=1)
    second = await place(engine, table_id="t2")
    clock.advance(minutes=1)
    third = await place(engine)
    await engine.set_status(third.id, OrderStatus.PREPARING)

    assert [o.id for o in await engine.list_orders()] == [third.id, second.id, first.id]
    assert [o.id for o in await engine.list_orders(table_id="t1")] == [third.id, first.id]
    assert [o.id for o in await engine.list_orders(status=OrderStatus.PENDING)] == [second.id, first.id]
    assert [
        o.id for o in await engine.list_orders(status=OrderStatus.PENDING, table_id="t1")
    ] == [first.id]
    assert await engine.list_orders(status=OrderStatus.SERVED) == []
