"""Customer records, keyed by phone number within a restaurant."""

import logging
import re
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from tableat.core.errors import ValidationError
from tableat.db.store import Collection, DocumentStore, Subscription, collection_path
from tableat.schemas.base import utcnow
from tableat.schemas.customer import Customer
from tableat.services.subscriptions import list_records, subscribe_records

logger = logging.getLogger(__name__)

MAX_FAVORITE_ITEMS = 10
VIP_MIN_ORDERS = 5
LOYAL_MIN_ORDERS = 3

_NON_DIGITS = re.compile(r"\D")


def _customers_path(restaurant_id: str) -> str:
    return collection_path(restaurant_id, Collection.CUSTOMERS)


def customer_doc_id(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def customer_tier(total_orders: int) -> str:
    if total_orders >= VIP_MIN_ORDERS:
        return "VIP"
    if total_orders >= LOYAL_MIN_ORDERS:
        return "Loyal"
    return "Regular"


def merge_favorites(existing: Iterable[str], new_items: Iterable[str]) -> List[str]:
    merged: List[str] = []
    for item in list(existing) + list(new_items):
        if item and item not in merged:
            merged.append(item)
    return merged[:MAX_FAVORITE_ITEMS]


def get_customer(store: DocumentStore, restaurant_id: str, phone: str) -> Optional[Customer]:
    doc_id = customer_doc_id(phone)
    if not doc_id:
        return None
    data = store.get(_customers_path(restaurant_id), doc_id)
    return Customer.from_document(doc_id, data) if data is not None else None


def list_customers(store: DocumentStore, restaurant_id: str) -> List[Customer]:
    return list_records(store, restaurant_id, Collection.CUSTOMERS, Customer)


def register_customer_visit(
    store: DocumentStore,
    restaurant_id: str,
    name: str,
    phone: str,
    ordered_items: Iterable[str] = (),
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Create or refresh the customer record for a visit.

    The order count is left alone here; it only grows when an order is
    served (``complete_customer_order``).
    """
    doc_id = customer_doc_id(phone)
    if not doc_id:
        raise ValidationError("Customer phone number is required")

    now = now or utcnow()
    path = _customers_path(restaurant_id)
    existing = store.get(path, doc_id)

    if existing is None:
        customer = Customer(
            name=name,
            phone=phone,
            email=email,
            total_orders=0,
            favorite_items=merge_favorites([], ordered_items),
            last_visit=now,
            created_at=now,
            updated_at=now,
        )
        store.set(path, doc_id, customer.to_document())
        logger.info(f"Restaurant {restaurant_id}: new customer {doc_id}")
        return doc_id

    patch = {
        "name": name or existing.get("name", ""),
        "favorite_items": merge_favorites(existing.get("favorite_items") or [], ordered_items),
        "last_visit": now,
        "updated_at": now,
    }
    if email:
        patch["email"] = email
    store.update(path, doc_id, patch)
    return doc_id


def complete_customer_order(
    store: DocumentStore,
    restaurant_id: str,
    phone: str,
    name: str = "",
    ordered_items: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> int:
    """Count one more order for the customer; returns the new total.

    A customer whose visit was never registered is created here with one
    order, so a served order is always counted.
    """
    doc_id = customer_doc_id(phone)
    if not doc_id:
        raise ValidationError("Customer phone number is required")

    now = now or utcnow()
    path = _customers_path(restaurant_id)
    data = store.get(path, doc_id)

    if data is None:
        customer = Customer(
            name=name,
            phone=phone,
            total_orders=1,
            favorite_items=merge_favorites([], ordered_items),
            last_visit=now,
            created_at=now,
            updated_at=now,
        )
        store.set(path, doc_id, customer.to_document())
        logger.info(f"Restaurant {restaurant_id}: customer {doc_id} created on order completion")
        return 1

    total = int(data.get("total_orders") or 0) + 1
    store.update(path, doc_id, {
        "total_orders": total,
        "favorite_items": merge_favorites(data.get("favorite_items") or [], ordered_items),
        "last_visit": now,
        "updated_at": now,
    })
    return total


def subscribe_to_customers(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[List[Customer]], None],
) -> Subscription:
    return subscribe_records(store, restaurant_id, Collection.CUSTOMERS, Customer, callback)
