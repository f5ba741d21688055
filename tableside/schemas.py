"""
Pydantic Schemas for Request/Response Validation

Request bodies for tables, QR codes and orders, and the response shapes
the dashboard polls. Every order response carries its lock projection.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
import re

from tableside.entities import (
    AccessCode,
    AccessCodeKind,
    Order,
    OrderStatus,
    PaymentStatus,
    Table,
)
from tableside.services.locking import LockInfo, LockState


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single item in an order, priced as shown on the menu at order time."""
    menu_item_id: str = Field(..., min_length=1, examples=["665f1c2e9b1d"])
    name: Optional[str] = Field(None, max_length=100, examples=["Pizza Margherita"])
    # Quantities below 1 are rejected by the engine as an empty order
    quantity: int = Field(..., examples=[2])
    unit_price: float = Field(..., ge=0, examples=[14.99])


class OrderCreate(BaseModel):
    """Request schema for a guest placing an order from a table."""
    table_id: str = Field(..., min_length=1, examples=["t1"])
    items: List[OrderItemCreate] = Field(default_factory=list)
    customer_name: Optional[str] = Field(None, max_length=100, examples=["John Doe"])
    customer_email: Optional[str] = Field(None, examples=["john@example.com"])
    notes: Optional[str] = Field(None, max_length=500, examples=["No onions"])

    @field_validator('customer_email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        # Basic email validation
        if not re.match(r'^[\w\.\-+]+@[\w\.-]+\.\w+$', v):
            raise ValueError('Invalid email format')
        return v


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus = Field(..., alias="paymentStatus")

    model_config = {"populate_by_name": True}


class TableCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=20, examples=["7"])
    capacity: int = Field(default=4, examples=[4])
    section: Optional[str] = Field(None, max_length=100, examples=["Patio"])
    is_active: bool = True


class TableActiveUpdate(BaseModel):
    is_active: bool


class BindRequest(BaseModel):
    """Base URL the QR code should open; defaults to PUBLIC_BASE_URL."""
    base_url: Optional[str] = Field(None, examples=["https://order.example.com"])

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not re.match(r'^https?://', v):
            raise ValueError('Base URL must start with http:// or https://')
        return v


class AdHocCodeCreate(BaseModel):
    section: str = Field(..., max_length=100, examples=["Instagram"])
    url: str = Field(..., max_length=500, examples=["https://instagram.com/restaurant"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class LockInfoResponse(BaseModel):
    """Lock projection recomputed on every read."""
    state: LockState
    locked: bool
    remaining_seconds: Optional[int] = None
    label: Optional[str] = None

    @classmethod
    def from_info(cls, info: LockInfo) -> "LockInfoResponse":
        return cls(**info.to_dict())


class OrderItemResponse(BaseModel):
    menu_item_id: str
    name: Optional[str]
    quantity: int
    unit_price: float


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: str
    table_id: str
    items: List[OrderItemResponse]
    total: float
    customer_name: str
    customer_email: Optional[str]
    notes: Optional[str]
    status: OrderStatus
    payment_status: PaymentStatus
    served_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int
    lock: LockInfoResponse

    @classmethod
    def from_entity(cls, order: Order, lock: LockInfo) -> "OrderResponse":
        return cls(
            id=order.id,
            table_id=order.table_id,
            items=[OrderItemResponse(**item.to_dict()) for item in order.items],
            total=order.total,
            customer_name=order.customer.name,
            customer_email=order.customer.email,
            notes=order.notes,
            status=order.status,
            payment_status=order.payment_status,
            served_by=order.served_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
            lock=LockInfoResponse.from_info(lock),
        )


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class OrderBoardResponse(BaseModel):
    """Orders partitioned by status for the dashboard board."""
    columns: dict[str, List[OrderResponse]]


class OrderSummaryResponse(BaseModel):
    total_orders: int
    by_status: dict[str, int]
    paid_revenue: float
    outstanding: float
    locked_orders: int


class TableResponse(BaseModel):
    id: str
    number: str
    capacity: int
    section: Optional[str]
    is_active: bool
    access_code_id: Optional[str]
    created_at: datetime

    @classmethod
    def from_entity(cls, table: Table) -> "TableResponse":
        return cls(
            id=table.id,
            number=table.number,
            capacity=table.capacity,
            section=table.section,
            is_active=table.is_active,
            access_code_id=table.access_code_id,
            created_at=table.created_at,
        )


class AccessCodeResponse(BaseModel):
    id: str
    kind: AccessCodeKind
    target_id: Optional[str]
    section: str
    url: str
    artifact_ref: str
    created_at: datetime

    @classmethod
    def from_entity(cls, code: AccessCode) -> "AccessCodeResponse":
        return cls(
            id=code.id,
            kind=code.kind,
            target_id=code.target_id,
            section=code.section,
            url=code.url,
            artifact_ref=code.artifact_ref,
            created_at=code.created_at,
        )


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    store: str
    artifact_storage: str
    redis: str
    timestamp: datetime
