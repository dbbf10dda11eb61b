"""Menu schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tableat.core.sanitize import sanitize_text
from tableat.schemas.base import Record, as_utc


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class MenuDiscount(BaseModel):
    """Per-item offer: a percentage (0-100) or a fixed amount off, optionally time-boxed."""

    model_config = ConfigDict(use_enum_values=True)

    is_active: bool = True
    type: DiscountType = DiscountType.PERCENTAGE
    value: float = Field(..., ge=0)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_value(self):
        if self.type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        if self.valid_from and self.valid_to and as_utc(self.valid_to) < as_utc(self.valid_from):
            raise ValueError("valid_to must not be before valid_from")
        return self


class MenuItem(Record):
    name: str
    description: str = ""
    category: str
    price: float
    available: bool = True
    is_best_seller: bool = False
    image: Optional[str] = None
    discount: Optional[MenuDiscount] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    category: str = Field(..., min_length=1, max_length=50)
    price: float = Field(..., ge=0)
    available: bool = True
    is_best_seller: bool = False
    image: Optional[str] = None
    discount: Optional[MenuDiscount] = None

    @field_validator("name", "description", "category", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    price: Optional[float] = Field(default=None, ge=0)
    available: Optional[bool] = None
    is_best_seller: Optional[bool] = None
    image: Optional[str] = None
    discount: Optional[MenuDiscount] = None

    @field_validator("name", "description", "category", mode="before")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)
