"""Notification schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from tableat.schemas.base import Record


class NotificationType(str, Enum):
    NEW_ORDER = "new_order"
    ORDER_READY = "order_ready"
    TABLE_STATUS = "table_status"
    CUSTOMER_FEEDBACK = "customer_feedback"


class Notification(Record):
    type: NotificationType
    title: str
    message: str
    order_id: Optional[str] = None
    table_number: Optional[int] = None
    is_read: bool = False
    created_at: Optional[datetime] = None


class NotificationCreate(BaseModel):
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=120)
    message: str = Field(..., min_length=1, max_length=500)
    order_id: Optional[str] = None
    table_number: Optional[int] = None
