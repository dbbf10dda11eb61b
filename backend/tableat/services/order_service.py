"""Order placement and status workflow.

Placing an order writes the order, then fans out to the customer record, a
``new_order`` notification and the table's occupancy. Those follow-up writes
are independent documents: a failure in one is logged and does not undo the
order.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from tableat.core.config import settings
from tableat.core.errors import NotFoundError, ValidationError
from tableat.db.store import Collection, DocumentStore, Subscription, collection_path
from tableat.schemas.base import as_utc, utcnow
from tableat.schemas.order import (
    CLOSED_ORDER_STATUSES,
    Order,
    OrderCreate,
    OrderItem,
    OrderStatus,
    StatusChange,
)
from tableat.services import customer_service, notification_service, table_service
from tableat.services.subscriptions import list_records, subscribe_records

logger = logging.getLogger(__name__)


def _orders_path(restaurant_id: str) -> str:
    return collection_path(restaurant_id, Collection.ORDERS)


def items_total(items: List[OrderItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


def get_order(store: DocumentStore, restaurant_id: str, order_id: str) -> Optional[Order]:
    data = store.get(_orders_path(restaurant_id), order_id)
    return Order.from_document(order_id, data) if data is not None else None


def require_order(store: DocumentStore, restaurant_id: str, order_id: str) -> Order:
    order = get_order(store, restaurant_id, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(store: DocumentStore, restaurant_id: str) -> List[Order]:
    return list_records(store, restaurant_id, Collection.ORDERS, Order)


def next_daily_order_number(store: DocumentStore, restaurant_id: str, now: datetime) -> int:
    """1-based position of a new order among today's orders (restaurant local day)."""
    today = now.astimezone(settings.tzinfo).date()
    count = sum(
        1 for order in list_orders(store, restaurant_id)
        if order.created_at is not None
        and as_utc(order.created_at).astimezone(settings.tzinfo).date() == today
    )
    return count + 1


def create_order(
    store: DocumentStore,
    restaurant_id: str,
    data: OrderCreate,
    now: Optional[datetime] = None,
) -> str:
    now = now or utcnow()
    total = data.total_amount if data.total_amount is not None else items_total(data.items)
    daily_number = data.daily_order_number or next_daily_order_number(store, restaurant_id, now)

    order = Order(
        **data.model_dump(exclude={"total_amount", "daily_order_number"}),
        total_amount=total,
        daily_order_number=daily_number,
        status=OrderStatus.PENDING,
        status_history=[],
        created_at=now,
        updated_at=now,
    )
    order_id = store.add(_orders_path(restaurant_id), order.to_document())
    logger.info(f"Restaurant {restaurant_id}: order {order_id} for table {order.table_number}")

    if order.customer_name and order.customer_phone:
        try:
            customer_service.register_customer_visit(
                store,
                restaurant_id,
                name=order.customer_name,
                phone=order.customer_phone,
                ordered_items=[item.name for item in order.items],
                now=now,
            )
        except Exception:
            logger.exception(f"Order {order_id}: failed to register customer visit")

    try:
        notification_service.notify_new_order(store, restaurant_id, order_id, order.table_number)
    except Exception:
        logger.exception(f"Order {order_id}: failed to create new-order notification")

    table_service.mark_table_for_order(store, restaurant_id, order.table_number, True, order_id)
    return order_id


def update_order_status(
    store: DocumentStore,
    restaurant_id: str,
    order_id: str,
    status: OrderStatus,
    now: Optional[datetime] = None,
) -> StatusChange:
    """Move an order to ``status`` and record how long the previous one lasted."""
    order = require_order(store, restaurant_id, order_id)
    status = OrderStatus(status)
    if order.status == OrderStatus.SERVED:
        raise ValidationError(f"Order {order_id} has been served and can no longer change")

    now = now or utcnow()
    if order.status_history:
        since = order.status_history[-1].timestamp
    else:
        since = order.created_at or now
    duration = round((now - as_utc(since)).total_seconds() / 60)

    change = StatusChange(status=status, timestamp=now, duration=duration)
    history = [entry.model_dump() for entry in order.status_history] + [change.model_dump()]
    store.update(_orders_path(restaurant_id), order_id, {
        "status": status.value,
        "status_history": history,
        "updated_at": now,
    })
    logger.info(f"Restaurant {restaurant_id}: order {order_id} {order.status} -> {status.value}")

    if status == OrderStatus.SERVED and order.customer_name and order.customer_phone:
        try:
            customer_service.complete_customer_order(
                store,
                restaurant_id,
                order.customer_phone,
                name=order.customer_name,
                ordered_items=[item.name for item in order.items],
                now=now,
            )
        except Exception:
            logger.exception(f"Order {order_id}: failed to count customer order")

    if status in CLOSED_ORDER_STATUSES:
        table_service.release_table_for_order(store, restaurant_id, order.table_number, order_id)

    if status == OrderStatus.READY:
        try:
            notification_service.notify_order_ready(store, restaurant_id, order_id, order.table_number)
        except Exception:
            logger.exception(f"Order {order_id}: failed to create order-ready notification")

    return change


def subscribe_to_orders(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[List[Order]], None],
) -> Subscription:
    return subscribe_records(store, restaurant_id, Collection.ORDERS, Order, callback)
