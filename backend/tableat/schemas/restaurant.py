"""Restaurant schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tableat.core.sanitize import sanitize_text
from tableat.schemas.base import Record


class RestaurantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SubscriptionState(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    TRIAL = "trial"


class Restaurant(Record):
    """Tenant profile document: ``restaurants/{id}``.

    Approval flags, the admin email and the subscription window are Optional
    because older documents may predate them; a missing flag means "not
    approved" and a missing window means "expired".
    """

    name: str = ""
    admin_email: Optional[str] = None
    admin_phone: Optional[str] = None
    address: str = ""
    phone: str = ""
    fssai_no: str = ""
    gst_no: Optional[str] = None
    description: Optional[str] = None
    status: RestaurantStatus = RestaurantStatus.ACTIVE
    restaurant_open: bool = True
    subscription_start: Optional[datetime] = None
    subscription_end: Optional[datetime] = None
    subscription_status: SubscriptionState = SubscriptionState.ACTIVE
    quick_order_approved: Optional[bool] = None
    analytics_approved: Optional[bool] = None
    customer_approved: Optional[bool] = None
    inventory_management_approved: Optional[bool] = None
    staff_management_approved: Optional[bool] = None
    tax_enabled: bool = False
    tax_rate: float = 0.0
    banner_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    admin_email: str = Field(..., min_length=3, max_length=255)
    address: str = ""
    phone: str = ""
    fssai_no: str = ""
    gst_no: Optional[str] = None

    @field_validator("name", "address", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)

    @field_validator("admin_email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("admin_email must be an email address")
        return v.strip().lower()


class RestaurantStatusUpdate(BaseModel):
    """Partial update of the open flag and approval flags."""

    restaurant_open: Optional[bool] = None
    quick_order_approved: Optional[bool] = None
    analytics_approved: Optional[bool] = None
    customer_approved: Optional[bool] = None
    inventory_management_approved: Optional[bool] = None
    staff_management_approved: Optional[bool] = None
    tax_enabled: Optional[bool] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)


class SubscriptionInfo(BaseModel):
    is_valid: bool
    days_remaining: int
    status: SubscriptionState
