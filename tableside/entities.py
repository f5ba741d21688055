"""
Domain Entities

Plain dataclasses for the three records the ordering core works on:
Table, Order and AccessCode. Entity stores persist and return these;
the SQLAlchemy rows in `tableside.models` are only a storage detail.

Timestamps are timezone-aware UTC throughout.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    SERVED = "served"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Manual payment annotation; no gateway behind it."""
    UNPAID = "unpaid"
    PAID = "paid"


class AccessCodeKind(str, enum.Enum):
    """What an access code points at."""
    TABLE = "table"
    GLOBAL = "global"


GLOBAL_MENU_SECTION = "Global Menu"


# =============================================================================
# TABLE
# =============================================================================

@dataclass
class Table:
    """
    A physical table guests can order from.

    Attributes:
        number: Table number shown to staff, unique per restaurant
        capacity: Seats at the table
        section: Optional floor section label ("Patio", "Bar")
        access_code_id: The table's bound QR code, if one was generated
    """
    number: str
    capacity: int = 4
    section: Optional[str] = None
    is_active: bool = True
    access_code_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


# =============================================================================
# ACCESS CODE
# =============================================================================

@dataclass
class AccessCode:
    """
    A scannable QR artifact and the URL it encodes.

    Table codes carry the table id in `target_id`; global codes (the
    restaurant menu, social links) have no target and are told apart by
    their `section` label.
    """
    kind: AccessCodeKind
    section: str
    url: str
    artifact_ref: str
    target_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


# =============================================================================
# ORDER
# =============================================================================

@dataclass
class OrderItem:
    """A line item with the unit price snapshotted at order time."""
    menu_item_id: str
    quantity: int
    unit_price: float
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        return cls(
            menu_item_id=str(data["menu_item_id"]),
            quantity=int(data["quantity"]),
            unit_price=float(data["unit_price"]),
            name=data.get("name"),
        )


@dataclass
class Customer:
    name: str = "Guest"
    email: Optional[str] = None


@dataclass
class Order:
    """
    A guest's order against one table.

    `version` increases by one on every stored mutation; stores use it to
    reject writes based on a stale read.
    """
    table_id: str
    items: list[OrderItem]
    total: float
    customer: Customer = field(default_factory=Customer)
    notes: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    served_by: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    def to_export_dict(self) -> dict:
        """Flatten for the order history export."""
        return {
            "order_id": self.id,
            "table_id": self.table_id,
            "customer_name": self.customer.name,
            "customer_email": self.customer.email,
            "items": [item.to_dict() for item in self.items],
            "notes": self.notes,
            "total": self.total,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "served_by": self.served_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def calculate_total(items: list[OrderItem]) -> float:
    """Sum of unit price times quantity, rounded to cents."""
    return round(sum(item.quantity * item.unit_price for item in items), 2)
