"""Restaurant profile and subscription management.

A restaurant document lives at ``restaurants/{id}``. Its id is derived from
the restaurant name at signup and every other collection is scoped below
it. The approval flags on this document drive the navigation gate.
"""

import calendar
import logging
import math
import re
from datetime import datetime
from typing import Callable, Optional

from tableat.core.config import settings
from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import RESTAURANTS, DocumentStore, Subscription
from tableat.schemas.base import as_utc, utcnow
from tableat.schemas.restaurant import (
    Restaurant,
    RestaurantCreate,
    RestaurantStatus,
    RestaurantStatusUpdate,
    SubscriptionInfo,
    SubscriptionState,
)
from tableat.services.permissions import PERMISSION_DEFAULTS
from tableat.services.subscriptions import subscribe_record

logger = logging.getLogger(__name__)

_ID_STRIP = re.compile(r"[^a-zA-Z0-9_]")


def normalize_restaurant_id(name: str) -> str:
    """Derive the document id from a name: ``By The Way!`` -> ``BYTHEWAY``."""
    return _ID_STRIP.sub("", name or "").upper()


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping to the last day of the month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def create_restaurant(
    store: DocumentStore,
    data: RestaurantCreate,
    now: Optional[datetime] = None,
) -> Restaurant:
    restaurant_id = normalize_restaurant_id(data.name)
    if not restaurant_id:
        raise ValidationError("Restaurant name must contain letters or digits")
    if store.get(RESTAURANTS, restaurant_id) is not None:
        raise ValidationError(f"Restaurant {restaurant_id} already exists")

    now = now or utcnow()
    restaurant = Restaurant(
        id=restaurant_id,
        name=data.name,
        admin_email=data.admin_email,
        address=data.address,
        phone=data.phone,
        fssai_no=data.fssai_no,
        gst_no=data.gst_no,
        status=RestaurantStatus.ACTIVE,
        restaurant_open=True,
        subscription_start=now,
        subscription_end=add_months(now, settings.subscription_months),
        subscription_status=SubscriptionState.ACTIVE,
        created_at=now,
        updated_at=now,
        **PERMISSION_DEFAULTS,
    )
    store.set(RESTAURANTS, restaurant_id, restaurant.to_document())
    logger.info(f"Restaurant {restaurant_id} created for {data.admin_email}")
    return restaurant


def get_restaurant(store: DocumentStore, restaurant_id: str) -> Optional[Restaurant]:
    if not restaurant_id:
        return None
    data = store.get(RESTAURANTS, restaurant_id)
    return Restaurant.from_document(restaurant_id, data) if data is not None else None


def require_restaurant(store: DocumentStore, restaurant_id: str) -> Restaurant:
    restaurant = get_restaurant(store, restaurant_id)
    if restaurant is None:
        raise NotFoundError(f"Restaurant {restaurant_id} not found")
    return restaurant


def update_restaurant_status(
    store: DocumentStore,
    restaurant_id: str,
    changes: RestaurantStatusUpdate,
) -> None:
    """Write only the fields present in ``changes``; last write wins."""
    patch = changes.model_dump(exclude_none=True)
    if not patch:
        return
    require_restaurant(store, restaurant_id)
    store.update(RESTAURANTS, restaurant_id, {**patch, "updated_at": utcnow()})


def set_restaurant_open(store: DocumentStore, restaurant_id: str, is_open: bool) -> None:
    update_restaurant_status(store, restaurant_id, RestaurantStatusUpdate(restaurant_open=is_open))


def renew_subscription(
    store: DocumentStore,
    restaurant_id: str,
    months: int = 1,
    now: Optional[datetime] = None,
) -> datetime:
    """Extend the subscription window and return the new end date.

    An expired subscription restarts from ``now``; a running one is extended
    from its current end.
    """
    if months < 1:
        raise ValidationError("months must be at least 1")
    restaurant = require_restaurant(store, restaurant_id)
    now = now or utcnow()
    if restaurant.subscription_end is None:
        start_from = now
    else:
        start_from = max(as_utc(restaurant.subscription_end), now)
    new_end = add_months(start_from, months)
    patch = {
        "subscription_end": new_end,
        "subscription_status": SubscriptionState.ACTIVE.value,
        "status": RestaurantStatus.ACTIVE.value,
        "updated_at": now,
    }
    if restaurant.subscription_start is None:
        patch["subscription_start"] = now
    store.update(RESTAURANTS, restaurant_id, patch)
    logger.info(f"Restaurant {restaurant_id} subscription renewed until {new_end.isoformat()}")
    return new_end


def subscription_status(restaurant: Restaurant, now: Optional[datetime] = None) -> SubscriptionInfo:
    now = now or utcnow()
    if restaurant.subscription_end is None:
        return SubscriptionInfo(is_valid=False, days_remaining=0, status=SubscriptionState.EXPIRED)
    seconds_left = (as_utc(restaurant.subscription_end) - now).total_seconds()
    is_valid = seconds_left > 0
    days_remaining = max(0, math.ceil(seconds_left / 86400))
    if not is_valid:
        state = SubscriptionState.EXPIRED
    else:
        state = SubscriptionState(restaurant.subscription_status)
    return SubscriptionInfo(is_valid=is_valid, days_remaining=days_remaining, status=state)


def subscribe_to_restaurant(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[Optional[Restaurant]], None],
) -> Subscription:
    return subscribe_record(store, RESTAURANTS, restaurant_id, Restaurant, callback)
