"""Order routes."""

from datetime import date
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import StreamingResponse

from tableat.api.deps import Store
from tableat.core.rate_limit import limiter
from tableat.core.responses import list_response, write_response
from tableat.schemas.order import OrderCreate, OrderStatus, OrderStatusUpdate
from tableat.services import export_service, order_service, views

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    store: Store,
    restaurant_id: str,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    table_number: Optional[int] = Query(None, ge=0),
):
    view = views.orders_view(
        order_service.list_orders(store, restaurant_id),
        {"status": status_filter.value if status_filter else None, "table_number": table_number},
    )
    return list_response(
        [o.model_dump(mode="json") for o in view.orders],
        total=view.total,
        by_status=view.by_status,
    )


@router.get("/export")
@limiter.limit("10/minute")
def export_orders(request: Request, store: Store, restaurant_id: str):
    content = export_service.export_orders_xlsx(order_service.list_orders(store, restaurant_id))
    filename = f"orders_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{order_id}")
@limiter.limit("60/minute")
def get_order(request: Request, store: Store, restaurant_id: str, order_id: str):
    return order_service.require_order(store, restaurant_id, order_id).model_dump(mode="json")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_order(request: Request, store: Store, restaurant_id: str, data: OrderCreate):
    return write_response(order_service.create_order(store, restaurant_id, data))


@router.put("/{order_id}/status")
@limiter.limit("60/minute")
def update_order_status(
    request: Request,
    store: Store,
    restaurant_id: str,
    order_id: str,
    data: OrderStatusUpdate,
):
    change = order_service.update_order_status(store, restaurant_id, order_id, data.status)
    return write_response(order_id, status=change.status, duration=change.duration)
