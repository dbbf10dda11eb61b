"""Order analytics route."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Request

from tableat.api.deps import Store
from tableat.core.errors import ValidationError
from tableat.core.rate_limit import limiter
from tableat.schemas.base import as_utc
from tableat.services import analytics_service, menu_service, order_service

router = APIRouter()


@router.get("/")
@limiter.limit("30/minute")
def get_order_analytics(
    request: Request,
    store: Store,
    restaurant_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    menu_item_id: Optional[str] = Query(None),
):
    if start and end and as_utc(start) > as_utc(end):
        raise ValidationError("start must not be after end")
    return analytics_service.order_analytics(
        order_service.list_orders(store, restaurant_id),
        menu_service.list_menu_items(store, restaurant_id),
        start=start,
        end=end,
        menu_item_id=menu_item_id,
    )
