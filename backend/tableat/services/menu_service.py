"""Menu item CRUD and offer pricing."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from tableat.core.config import settings
from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import Collection, DocumentStore, Subscription, collection_path
from tableat.schemas.base import as_utc, utcnow
from tableat.schemas.menu import DiscountType, MenuDiscount, MenuItem, MenuItemCreate, MenuItemUpdate
from tableat.services.subscriptions import list_records, subscribe_records

logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9\s]")
_SLUG_SPACES = re.compile(r"\s+")


def _menu_path(restaurant_id: str) -> str:
    return collection_path(restaurant_id, Collection.MENU)


def menu_item_slug(name: str) -> str:
    """``Paneer Tikka (Half)`` -> ``paneer_tikka_half``"""
    slug = _SLUG_STRIP.sub("", name.lower()).strip()
    return _SLUG_SPACES.sub("_", slug)


@dataclass(frozen=True)
class DiscountedPrice:
    original_price: float
    discounted_price: float
    discount_amount: float

    @property
    def has_discount(self) -> bool:
        return self.discount_amount > 0


def _discount_applies(discount: Optional[MenuDiscount], now: datetime) -> bool:
    if discount is None or not discount.is_active:
        return False
    if discount.valid_from and now < as_utc(discount.valid_from):
        return False
    if discount.valid_to and now > as_utc(discount.valid_to):
        return False
    return True


def discounted_price(item: MenuItem, now: Optional[datetime] = None) -> DiscountedPrice:
    """Price after the item's offer, if one is active at ``now``.

    A fixed amount never takes the price below zero.
    """
    now = now or utcnow()
    price = item.price
    if not _discount_applies(item.discount, now):
        return DiscountedPrice(price, price, 0.0)
    if item.discount.type == DiscountType.PERCENTAGE:
        amount = price * item.discount.value / 100
    else:
        amount = min(item.discount.value, price)
    amount = round(amount, 2)
    return DiscountedPrice(price, round(max(price - amount, 0.0), 2), amount)


def discount_label(item: MenuItem, now: Optional[datetime] = None) -> Optional[str]:
    """``20% OFF`` / ``₹30 OFF`` while an offer is active, else None."""
    if not discounted_price(item, now).has_discount:
        return None
    if item.discount.type == DiscountType.PERCENTAGE:
        return f"{item.discount.value:g}% OFF"
    return f"{settings.currency_symbol}{item.discount.value:g} OFF"


def list_menu_items(store: DocumentStore, restaurant_id: str) -> List[MenuItem]:
    return list_records(store, restaurant_id, Collection.MENU, MenuItem)


def get_menu_item(store: DocumentStore, restaurant_id: str, item_id: str) -> Optional[MenuItem]:
    data = store.get(_menu_path(restaurant_id), item_id)
    return MenuItem.from_document(item_id, data) if data is not None else None


def add_menu_item(store: DocumentStore, restaurant_id: str, data: MenuItemCreate) -> str:
    path = _menu_path(restaurant_id)
    doc_id = menu_item_slug(data.name)
    if not doc_id:
        raise ValidationError("Menu item name must contain letters or digits")

    now = utcnow()
    if store.get(path, doc_id) is not None:
        doc_id = f"{doc_id}_{int(now.timestamp() * 1000)}"

    item = MenuItem(**data.model_dump(), created_at=now, updated_at=now)
    store.set(path, doc_id, item.to_document())
    logger.info(f"Restaurant {restaurant_id}: menu item {doc_id} added")
    return doc_id


def update_menu_item(
    store: DocumentStore,
    restaurant_id: str,
    item_id: str,
    changes: MenuItemUpdate,
) -> None:
    patch = changes.model_dump(exclude_unset=True)
    for field_name in ("name", "category", "price"):
        if field_name in patch and patch[field_name] is None:
            raise ValidationError(f"{field_name} cannot be cleared")
    patch["updated_at"] = utcnow()
    store.update(_menu_path(restaurant_id), item_id, patch)


def delete_menu_item(store: DocumentStore, restaurant_id: str, item_id: str) -> None:
    path = _menu_path(restaurant_id)
    if store.get(path, item_id) is None:
        raise NotFoundError(f"Menu item {item_id} not found")
    store.delete(path, item_id)


def subscribe_to_menu(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[List[MenuItem]], None],
) -> Subscription:
    return subscribe_records(store, restaurant_id, Collection.MENU, MenuItem, callback)
