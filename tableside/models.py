"""
SQLAlchemy Database Models

Storage rows behind `SqlEntityStore`:
- dining tables with their bound QR reference
- QR access codes (table-bound or global)
- orders with snapshotted line items and an optimistic-lock version

Author: Khalil_Bannouri
Version: 1.0.0
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Enum, Boolean, JSON, ForeignKey, Index, text

from tableside.database import Base
from tableside.entities import GLOBAL_MENU_SECTION, AccessCodeKind, OrderStatus, PaymentStatus

# One code per table, and a single "Global Menu" code
TABLE_CODE_FILTER = "kind = 'TABLE'"
GLOBAL_MENU_FILTER = f"kind = 'GLOBAL' AND section = '{GLOBAL_MENU_SECTION}'"


class TableRecord(Base):
    """A physical table in the restaurant."""
    __tablename__ = "dining_tables"

    id = Column(String(32), primary_key=True)
    number = Column(String(20), nullable=False, unique=True, index=True)
    capacity = Column(Integer, nullable=False, default=4)
    section = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Cleared when the code is deleted
    access_code_id = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Table {self.number} ({self.id})>"


class AccessCodeRecord(Base):
    """
    A generated QR code.

    `target_id` is set for table codes only; global codes are found by
    their section label.
    """
    __tablename__ = "access_codes"
    __table_args__ = (
        Index(
            "uq_access_codes_table_target",
            "target_id",
            unique=True,
            sqlite_where=text(TABLE_CODE_FILTER),
            postgresql_where=text(TABLE_CODE_FILTER),
        ),
        Index(
            "uq_access_codes_global_menu",
            "section",
            unique=True,
            sqlite_where=text(GLOBAL_MENU_FILTER),
            postgresql_where=text(GLOBAL_MENU_FILTER),
        ),
    )

    id = Column(String(32), primary_key=True)
    kind = Column(Enum(AccessCodeKind), nullable=False, index=True)
    target_id = Column(String(32), nullable=True, index=True)
    section = Column(String(100), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    artifact_ref = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<AccessCode {self.kind.value} {self.section}>"


class OrderRecord(Base):
    """
    Guest order placed from a table.

    Mutated only through the lifecycle engine; never deleted.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)
    table_id = Column(
        String(32),
        ForeignKey("dining_tables.id"),
        nullable=False,
        index=True,
    )

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False)  # list of snapshotted line items
    total = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False, default="Guest")
    customer_email = Column(String(255), nullable=True)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )
    served_by = Column(String(100), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_id} - {self.status.value}>"
