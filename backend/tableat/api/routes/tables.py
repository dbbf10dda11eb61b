"""Table management routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from tableat.api.deps import Store
from tableat.core.rate_limit import limiter
from tableat.core.responses import list_response, write_response
from tableat.schemas.table import TableCreate, TableOccupancyUpdate
from tableat.services import table_service, views

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_tables(
    request: Request,
    store: Store,
    restaurant_id: str,
    occupied: Optional[bool] = Query(None),
):
    view = views.tables_view(table_service.list_tables(store, restaurant_id), {"occupied": occupied})
    return list_response(
        [t.model_dump(mode="json") for t in view.tables],
        total=view.total,
        occupied=view.occupied,
        available=view.available,
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_table(request: Request, store: Store, restaurant_id: str, data: TableCreate):
    return write_response(table_service.add_table(store, restaurant_id, data))


@router.delete("/{table_number}")
@limiter.limit("30/minute")
def delete_table(request: Request, store: Store, restaurant_id: str, table_number: int):
    table_service.delete_table(store, restaurant_id, table_number)
    return write_response(str(table_number))


@router.put("/{table_number}/occupancy")
@limiter.limit("60/minute")
def set_occupancy(
    request: Request,
    store: Store,
    restaurant_id: str,
    table_number: int,
    data: TableOccupancyUpdate,
):
    table_service.set_table_occupancy(
        store, restaurant_id, table_number, data.occupied, data.current_order_id
    )
    return write_response(str(table_number))


@router.post("/{table_number}/toggle")
@limiter.limit("60/minute")
def toggle_occupancy(request: Request, store: Store, restaurant_id: str, table_number: int):
    occupied = table_service.toggle_table_occupancy(store, restaurant_id, table_number)
    return write_response(str(table_number), occupied=occupied)


@router.post("/sync")
@limiter.limit("10/minute")
def sync_with_orders(request: Request, store: Store, restaurant_id: str):
    """Recompute occupancy from open orders."""
    changed = table_service.sync_tables_with_orders(store, restaurant_id)
    return write_response(changed={str(k): v for k, v in changed.items()})
