"""Menu management routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from tableat.api.deps import Store
from tableat.core.errors import NotFoundError
from tableat.core.rate_limit import limiter
from tableat.core.responses import list_response, write_response
from tableat.schemas.menu import MenuItem, MenuItemCreate, MenuItemUpdate
from tableat.services import menu_service, views

router = APIRouter()


def _menu_item_to_dict(item: MenuItem) -> dict:
    pricing = menu_service.discounted_price(item)
    return {
        **item.model_dump(mode="json"),
        "discounted_price": pricing.discounted_price,
        "discount_label": menu_service.discount_label(item),
    }


@router.get("/")
@limiter.limit("60/minute")
def list_menu(
    request: Request,
    store: Store,
    restaurant_id: str,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
):
    view = views.menu_view(
        menu_service.list_menu_items(store, restaurant_id),
        {"category": category, "search": search},
    )
    return list_response(
        [_menu_item_to_dict(i) for i in view.items],
        total=view.total,
        available=view.available,
        best_sellers=view.best_sellers,
        categories=view.categories,
    )


@router.get("/{item_id}")
@limiter.limit("60/minute")
def get_menu_item(request: Request, store: Store, restaurant_id: str, item_id: str):
    item = menu_service.get_menu_item(store, restaurant_id, item_id)
    if item is None:
        raise NotFoundError(f"Menu item {item_id} not found")
    return _menu_item_to_dict(item)


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_menu_item(request: Request, store: Store, restaurant_id: str, data: MenuItemCreate):
    return write_response(menu_service.add_menu_item(store, restaurant_id, data))


@router.patch("/{item_id}")
@limiter.limit("30/minute")
def update_menu_item(request: Request, store: Store, restaurant_id: str, item_id: str, data: MenuItemUpdate):
    menu_service.update_menu_item(store, restaurant_id, item_id, data)
    return write_response(item_id)


@router.delete("/{item_id}")
@limiter.limit("30/minute")
def delete_menu_item(request: Request, store: Store, restaurant_id: str, item_id: str):
    menu_service.delete_menu_item(store, restaurant_id, item_id)
    return write_response(item_id)
