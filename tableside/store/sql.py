"""
SQLAlchemy Entity Store

Persists tables, orders and access codes through the async ORM. Used in
staging and production (ENV_MODE=staging|production).

Each call runs in its own session and commits before returning. Order
updates are a single conditional UPDATE on (id, version), which makes the
database the arbiter when two requests race on the same order.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tableside.database import Base, build_session_maker
from tableside.entities import (
    AccessCode,
    AccessCodeKind,
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    Table,
)
from tableside.exceptions import (
    BindingConflict,
    ConcurrentModification,
    DuplicateTable,
    NotFound,
)
from tableside.models import AccessCodeRecord, OrderRecord, TableRecord
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ROW <-> ENTITY CONVERSION
# =============================================================================

def _table_from_row(row: TableRecord) -> Table:
    return Table(
        id=row.id,
        number=row.number,
        capacity=row.capacity,
        section=row.section,
        is_active=row.is_active,
        access_code_id=row.access_code_id,
        created_at=_aware(row.created_at),
    )


def _code_from_row(row: AccessCodeRecord) -> AccessCode:
    return AccessCode(
        id=row.id,
        kind=row.kind,
        target_id=row.target_id,
        section=row.section,
        url=row.url,
        artifact_ref=row.artifact_ref,
        created_at=_aware(row.created_at),
    )


def _order_from_row(row: OrderRecord) -> Order:
    return Order(
        id=row.id,
        table_id=row.table_id,
        items=[OrderItem.from_dict(item) for item in row.items],
        total=row.total,
        customer=Customer(name=row.customer_name, email=row.customer_email),
        notes=row.notes,
        status=row.status,
        payment_status=row.payment_status,
        served_by=row.served_by,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        version=row.version,
    )


def _order_values(order: Order) -> dict:
    """Mutable columns of an order row."""
    return {
        "table_id": order.table_id,
        "items": [item.to_dict() for item in order.items],
        "total": order.total,
        "notes": order.notes,
        "customer_name": order.customer.name,
        "customer_email": order.customer.email,
        "status": order.status,
        "payment_status": order.payment_status,
        "served_by": order.served_by,
        "updated_at": order.updated_at,
    }


class SqlEntityStore(BaseEntityStore):
    """
    Entity store on a SQLAlchemy async engine.

    Args:
        engine: Async engine (shared with the rest of the app)
        session_maker: Optional session factory; built from the engine if omitted
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.engine = engine
        self.session_maker = session_maker or build_session_maker(engine)

        logger.info(f"SqlEntityStore initialized ({engine.url.drivername})")

    @property
    def backend_name(self) -> str:
        return "sql"

    async def initialize(self) -> None:
        """Create all tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables ready")

    async def close(self) -> None:
        await self.engine.dispose()

    # =========================================================================
    # TABLES
    # =========================================================================

    async def get_table(self, table_id: str) -> Optional[Table]:
        async with self.session_maker() as session:
            row = await session.get(TableRecord, table_id)
            return _table_from_row(row) if row else None

    async def get_table_by_number(self, number: str) -> Optional[Table]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(TableRecord).where(TableRecord.number == number)
            )
            row = result.scalar_one_or_none()
            return _table_from_row(row) if row else None

    async def list_tables(self) -> list[Table]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(TableRecord).order_by(TableRecord.number)
            )
            return [_table_from_row(row) for row in result.scalars().all()]

    async def save_table(self, table: Table) -> Table:
        async with self.session_maker() as session:
            await session.merge(TableRecord(
                id=table.id,
                number=table.number,
                capacity=table.capacity,
                section=table.section,
                is_active=table.is_active,
                access_code_id=table.access_code_id,
                created_at=table.created_at,
            ))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateTable(f"Table {table.number} already exists") from e
        return table

    async def _update_table(self, table_id: str, **values) -> Optional[Table]:
        async with self.session_maker() as session:
            result = await session.execute(
                update(TableRecord)
                .where(TableRecord.id == table_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            row = await session.get(TableRecord, table_id)
            return _table_from_row(row) if row else None

    async def set_table_active(self, table_id: str, is_active: bool) -> Optional[Table]:
        return await self._update_table(table_id, is_active=is_active)

    async def set_table_access_code(self, table_id: str, code_id: str) -> Optional[Table]:
        return await self._update_table(table_id, access_code_id=code_id)

    async def clear_table_access_code(self, table_id: str, code_id: str) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(
                update(TableRecord)
                .where(
                    TableRecord.id == table_id,
                    TableRecord.access_code_id == code_id,
                )
                .values(access_code_id=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self.session_maker() as session:
            row = await session.get(OrderRecord, order_id)
            return _order_from_row(row) if row else None

    async def save_order(
        self,
        order: Order,
        expected_version: Optional[int] = None,
    ) -> Order:
        async with self.session_maker() as session:
            if expected_version is None:
                session.add(OrderRecord(
                    id=order.id,
                    created_at=order.created_at,
                    version=1,
                    **_order_values(order),
                ))
                await session.commit()
                order.version = 1
                return order

            result = await session.execute(
                update(OrderRecord)
                .where(
                    OrderRecord.id == order.id,
                    OrderRecord.version == expected_version,
                )
                .values(version=expected_version + 1, **_order_values(order))
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                await session.rollback()
                exists = await session.get(OrderRecord, order.id)
                if exists is None:
                    raise NotFound("Order", order.id)
                raise ConcurrentModification(order.id, expected_version)

            await session.commit()

        order.version = expected_version + 1
        return order

    async def query_orders(
        self,
        status: Optional[OrderStatus] = None,
        table_id: Optional[str] = None,
    ) -> list[Order]:
        query = select(OrderRecord).order_by(OrderRecord.created_at.desc())

        if status is not None:
            query = query.where(OrderRecord.status == status)
        if table_id is not None:
            query = query.where(OrderRecord.table_id == table_id)

        async with self.session_maker() as session:
            result = await session.execute(query)
            return [_order_from_row(row) for row in result.scalars().all()]

    # =========================================================================
    # ACCESS CODES
    # =========================================================================

    async def get_access_code(self, code_id: str) -> Optional[AccessCode]:
        async with self.session_maker() as session:
            row = await session.get(AccessCodeRecord, code_id)
            return _code_from_row(row) if row else None

    async def save_access_code(self, code: AccessCode) -> AccessCode:
        async with self.session_maker() as session:
            await session.merge(AccessCodeRecord(
                id=code.id,
                kind=code.kind,
                target_id=code.target_id,
                section=code.section,
                url=code.url,
                artifact_ref=code.artifact_ref,
                created_at=code.created_at,
            ))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise BindingConflict(f"{code.section} already has an access code") from e
        return code

    async def delete_access_code(self, code_id: str) -> bool:
        async with self.session_maker() as session:
            row = await session.get(AccessCodeRecord, code_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def query_access_codes(
        self,
        kind: Optional[AccessCodeKind] = None,
        target_id: Optional[str] = None,
        section: Optional[str] = None,
    ) -> list[AccessCode]:
        query = select(AccessCodeRecord).order_by(AccessCodeRecord.created_at.desc())

        if kind is not None:
            query = query.where(AccessCodeRecord.kind == kind)
        if target_id is not None:
            query = query.where(AccessCodeRecord.target_id == target_id)
        if section is not None:
            query = query.where(AccessCodeRecord.section == section)

        async with self.session_maker() as session:
            result = await session.execute(query)
            return [_code_from_row(row) for row in result.scalars().all()]

    async def health_check(self) -> bool:
        try:
            async with self.session_maker() as session:
                await session.execute(select(1))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
