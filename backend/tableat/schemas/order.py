"""Order schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tableat.core.sanitize import sanitize_text
from tableat.schemas.base import Record


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    CANCELLED = "cancelled"


OPEN_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)
CLOSED_ORDER_STATUSES = (OrderStatus.SERVED, OrderStatus.CANCELLED)


class OrderSource(str, Enum):
    QR_CODE = "qr_code"
    QUICK_ORDER = "quick_order"
    WALK_IN = "walk_in"
    DIRECT_ORDER = "direct_order"


class OrderType(str, Enum):
    DINE_IN = "dine-in"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"


class OrderItem(BaseModel):
    """A stored order line. Text is already escaped; never re-sanitize here."""

    menu_item_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None


class OrderItemCreate(OrderItem):
    @field_validator("name", "notes", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)


class StatusChange(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: OrderStatus
    timestamp: datetime
    duration: int = 0  # minutes since the previous change


class Order(Record):
    customer_name: str = ""
    customer_phone: str = ""
    table_number: int
    items: List[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float
    notes: str = ""
    order_source: OrderSource = OrderSource.DIRECT_ORDER
    order_type: OrderType = OrderType.DINE_IN
    daily_order_number: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    status_history: List[StatusChange] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderCreate(BaseModel):
    customer_name: str = Field(default="", max_length=100)
    customer_phone: str = Field(default="", max_length=20)
    table_number: int = Field(..., ge=0)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    total_amount: Optional[float] = Field(default=None, ge=0)
    notes: str = Field(default="", max_length=500)
    order_source: OrderSource = OrderSource.DIRECT_ORDER
    order_type: OrderType = OrderType.DINE_IN
    daily_order_number: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None

    @field_validator("customer_name", "notes", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
