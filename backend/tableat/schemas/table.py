"""Table schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tableat.schemas.base import Record


class Table(Record):
    table_number: int
    capacity: int
    occupied: bool = False
    current_order_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class TableCreate(BaseModel):
    table_number: int = Field(..., ge=1, le=9999)
    capacity: int = Field(..., ge=1, le=100)


class TableOccupancyUpdate(BaseModel):
    occupied: bool
    current_order_id: Optional[str] = None
