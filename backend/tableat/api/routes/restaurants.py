"""Restaurant profile, subscription and navigation routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from tableat.api.deps import Store
from tableat.api.routes.permissions import permission_update_body
from tableat.core.rate_limit import limiter
from tableat.core.responses import write_response
from tableat.schemas.restaurant import RestaurantCreate, RestaurantStatusUpdate
from tableat.services import navigation, restaurant_service
from tableat.services.permissions import ensure_permission_defaults

router = APIRouter()


class OpenUpdate(BaseModel):
    restaurant_open: bool


class RenewRequest(BaseModel):
    months: int = Field(default=1, ge=1, le=36)


def _isoformat(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment is not None else None


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_restaurant(request: Request, store: Store, data: RestaurantCreate):
    restaurant = restaurant_service.create_restaurant(store, data)
    return write_response(restaurant.id)


@router.get("/{restaurant_id}")
@limiter.limit("60/minute")
def get_restaurant(request: Request, store: Store, restaurant_id: str):
    restaurant = restaurant_service.require_restaurant(store, restaurant_id)
    return restaurant.model_dump(mode="json")


@router.patch("/{restaurant_id}/status")
@limiter.limit("30/minute")
def update_restaurant_status(request: Request, store: Store, restaurant_id: str, data: RestaurantStatusUpdate):
    restaurant_service.update_restaurant_status(store, restaurant_id, data)
    return write_response(restaurant_id)


@router.put("/{restaurant_id}/open")
@limiter.limit("30/minute")
def set_restaurant_open(request: Request, store: Store, restaurant_id: str, data: OpenUpdate):
    restaurant_service.set_restaurant_open(store, restaurant_id, data.restaurant_open)
    return write_response(restaurant_id)


@router.get("/{restaurant_id}/subscription")
@limiter.limit("60/minute")
def get_subscription_status(request: Request, store: Store, restaurant_id: str):
    restaurant = restaurant_service.require_restaurant(store, restaurant_id)
    info = restaurant_service.subscription_status(restaurant)
    return {
        **info.model_dump(mode="json"),
        "subscription_start": _isoformat(restaurant.subscription_start),
        "subscription_end": _isoformat(restaurant.subscription_end),
    }


@router.post("/{restaurant_id}/subscription/renew")
@limiter.limit("10/minute")
def renew_subscription(request: Request, store: Store, restaurant_id: str, data: RenewRequest):
    new_end = restaurant_service.renew_subscription(store, restaurant_id, months=data.months)
    return write_response(restaurant_id, subscription_end=new_end.isoformat())


@router.get("/{restaurant_id}/navigation")
@limiter.limit("60/minute")
def get_navigation(request: Request, store: Store, restaurant_id: str):
    """Sidebar entries the restaurant's approval flags allow."""
    restaurant = restaurant_service.get_restaurant(store, restaurant_id)
    entries = navigation.visible_entries(restaurant)
    return {
        "items": [{"title": e.title, "url": e.url} for e in entries],
        "total": len(entries),
        "loaded": restaurant is not None,
    }


@router.post("/{restaurant_id}/permissions/defaults")
@limiter.limit("10/minute")
def backfill_permissions(request: Request, store: Store, restaurant_id: str):
    return permission_update_body(ensure_permission_defaults(store, restaurant_id))
