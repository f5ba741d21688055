"""Dashboard board and summary."""

from conftest import items
from tableside.entities import OrderStatus, PaymentStatus, Table
from tableside.services.queries import BOARD_COLUMNS, group_by_status

STAFF = "staff-anna"


async def seed(engine, clock):
    """One order per status, oldest first."""
    created = {}
    for status, path in [
        (OrderStatus.PENDING, []),
        (OrderStatus.PREPARING, [OrderStatus.PREPARING]),
        (OrderStatus.SERVED, [OrderStatus.PREPARING, OrderStatus.SERVED]),
        (OrderStatus.COMPLETED, [OrderStatus.PREPARING, OrderStatus.SERVED, OrderStatus.COMPLETED]),
        (OrderStatus.CANCELLED, [OrderStatus.CANCELLED]),
    ]:
        order = await engine.create_order("t1", items(("m1", 1, 10.0)))
        for step in path:
            order = await engine.set_status(order.id, step, acting_staff_id=STAFF)
        created[status] = order
        clock.advance(seconds=10)
    return created


async def test_board_groups_by_status_and_hides_cancelled(engine, queries, table, clock):
    created = await seed(engine, clock)

    board = await queries.board()

    assert list(board) == list(BOARD_COLUMNS)
    for status in BOARD_COLUMNS:
        assert [o.id for o in board[status]] == [created[status].id]


async def test_board_can_include_cancelled(engine, queries, table, clock):
    created = await seed(engine, clock)

    board = await queries.board(include_cancelled=True)

    assert [o.id for o in board[OrderStatus.CANCELLED]] == [created[OrderStatus.CANCELLED].id]


async def test_board_filters_by_table(engine, queries, store, table, clock):
    await store.save_table(Table(number="2", id="t2"))
    await engine.create_order("t1", items(("m1", 1, 10.0)))
    other = await engine.create_order("t2", items(("m1", 1, 10.0)))

    board = await queries.board(table_id="t2")

    assert [o.id for o in board[OrderStatus.PENDING]] == [other.id]


def test_group_by_status_of_nothing():
    assert group_by_status([]) == {status: [] for status in BOARD_COLUMNS}


async def test_summary(engine, queries, table, clock):
    created = await seed(engine, clock)
    completed = created[OrderStatus.COMPLETED]
    await engine.set_payment_status(completed.id, PaymentStatus.PAID)
    await engine.set_payment_status(created[OrderStatus.CANCELLED].id, PaymentStatus.PAID)

    summary = await queries.summary()

    assert summary["total_orders"] == 5
    assert summary["by_status"] == {
        "pending": 1,
        "preparing": 1,
        "served": 1,
        "completed": 1,
        "cancelled": 1,
    }
    assert summary["paid_revenue"] == 10.0
    assert summary["outstanding"] == 30.0
    assert summary["locked_orders"] == 0

    clock.advance(minutes=5)
    assert (await queries.summary())["locked_orders"] == 1


async def test_summary_of_empty_store(queries):
    summary = await queries.summary()
    assert summary["total_orders"] == 0
    assert summary["paid_revenue"] == 0.0
    assert summary["locked_orders"] == 0
