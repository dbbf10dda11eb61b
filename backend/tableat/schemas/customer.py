"""Customer schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from tableat.schemas.base import Record


class Customer(Record):
    name: str
    phone: str
    email: Optional[str] = None
    total_orders: int = 0
    favorite_items: List[str] = []
    last_visit: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
