"""Customer routes - list, lookup and spreadsheet export."""

from datetime import date
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from tableat.api.deps import Store
from tableat.api.routes.orders import XLSX_MEDIA_TYPE
from tableat.core.errors import NotFoundError
from tableat.core.rate_limit import limiter
from tableat.core.responses import list_response
from tableat.schemas.customer import Customer
from tableat.services import customer_service, export_service, views

router = APIRouter()


def _customer_to_dict(customer: Customer) -> dict:
    return {
        **customer.model_dump(mode="json"),
        "tier": customer_service.customer_tier(customer.total_orders),
    }


@router.get("/")
@limiter.limit("60/minute")
def list_customers(
    request: Request,
    store: Store,
    restaurant_id: str,
    search: Optional[str] = Query(None, max_length=100),
):
    view = views.customers_view(customer_service.list_customers(store, restaurant_id), {"search": search})
    return list_response(
        [_customer_to_dict(c) for c in view.customers],
        total=view.total,
        total_orders=view.total_orders,
        average_orders=view.average_orders,
        loyal=view.loyal,
    )


@router.get("/export")
@limiter.limit("10/minute")
def export_customers(
    request: Request,
    store: Store,
    restaurant_id: str,
    search: Optional[str] = Query(None, max_length=100),
):
    """Download the (optionally searched) customer list as xlsx."""
    view = views.customers_view(customer_service.list_customers(store, restaurant_id), {"search": search})
    content = export_service.export_customers_xlsx(view.customers)
    filename = f"customers_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{phone}")
@limiter.limit("60/minute")
def get_customer(request: Request, store: Store, restaurant_id: str, phone: str):
    customer = customer_service.get_customer(store, restaurant_id, phone)
    if customer is None:
        raise NotFoundError(f"Customer {phone} not found")
    return _customer_to_dict(customer)
