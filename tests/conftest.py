"""
Shared fixtures.

Tests run in development mode: the in-memory entity store, mock artifact
storage and a controllable clock, so lock-window behaviour can be checked
without waiting.
"""

import os

# Must be set before anything imports tableside.core.config
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EXPORT_ORDER_HISTORY"] = "true"

from datetime import datetime, timedelta, timezone

import pytest

from tableside.entities import OrderItem, Table
from tableside.services.artifacts.mock import MockArtifactStorage
from tableside.services.binder import AccessCodeBinder
from tableside.services.lifecycle import OrderLifecycleEngine
from tableside.services.queries import OrderQueryService
from tableside.services.tables import TableService
from tableside.store.memory import InMemoryEntityStore

T0 = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def fake_qr(url: str) -> bytes:
    return b"PNG:" + url.encode()


def items(*specs) -> list[OrderItem]:
    """items(("m1", 2, 100.0), ...) -> OrderItem list"""
    return [OrderItem(menu_item_id=m, quantity=q, unit_price=p) for m, q, p in specs]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def storage() -> MockArtifactStorage:
    return MockArtifactStorage()


@pytest.fixture
def engine(store, clock) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(store, clock=clock)


@pytest.fixture
def binder(store, storage) -> AccessCodeBinder:
    return AccessCodeBinder(store, storage, renderer=fake_qr)


@pytest.fixture
def queries(store, clock) -> OrderQueryService:
    return OrderQueryService(store, clock=clock)


@pytest.fixture
def tables(store) -> TableService:
    return TableService(store)


@pytest.fixture
async def table(store) -> Table:
    return await store.save_table(Table(number="1", id="t1"))
