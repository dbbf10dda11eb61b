"""Notifications raised by domain events.

Read state only moves from unread to read. Marking an already-read
notification writes nothing.
"""

import logging
from typing import Callable, List

from tableat.core.errors import NotFoundError
from tableat.db.store import Collection, DocumentStore, Subscription, collection_path
from tableat.schemas.base import utcnow
from tableat.schemas.notification import Notification, NotificationCreate, NotificationType
from tableat.services.subscriptions import list_records, subscribe_records

logger = logging.getLogger(__name__)


def _notifications_path(restaurant_id: str) -> str:
    return collection_path(restaurant_id, Collection.NOTIFICATIONS)


def create_notification(store: DocumentStore, restaurant_id: str, data: NotificationCreate) -> str:
    notification = Notification(**data.model_dump(), is_read=False, created_at=utcnow())
    doc_id = store.add(_notifications_path(restaurant_id), notification.to_document())
    logger.info(f"Restaurant {restaurant_id}: notification {doc_id} ({notification.type})")
    return doc_id


def list_notifications(store: DocumentStore, restaurant_id: str) -> List[Notification]:
    return list_records(store, restaurant_id, Collection.NOTIFICATIONS, Notification)


def mark_notification_read(store: DocumentStore, restaurant_id: str, notification_id: str) -> bool:
    """Return True when the flag was flipped, False when it was already read."""
    path = _notifications_path(restaurant_id)
    data = store.get(path, notification_id)
    if data is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    if data.get("is_read"):
        return False
    store.update(path, notification_id, {"is_read": True})
    return True


def mark_all_read(store: DocumentStore, restaurant_id: str) -> int:
    """Mark every unread notification read; returns how many were written."""
    path = _notifications_path(restaurant_id)
    count = 0
    for notification in list_notifications(store, restaurant_id):
        if not notification.is_read:
            store.update(path, notification.id, {"is_read": True})
            count += 1
    return count


def notify_new_order(store: DocumentStore, restaurant_id: str, order_id: str, table_number: int) -> str:
    return create_notification(store, restaurant_id, NotificationCreate(
        type=NotificationType.NEW_ORDER,
        title="New Order Received",
        message=f"Table {table_number} has placed a new order",
        order_id=order_id,
        table_number=table_number,
    ))


def notify_order_ready(store: DocumentStore, restaurant_id: str, order_id: str, table_number: int) -> str:
    return create_notification(store, restaurant_id, NotificationCreate(
        type=NotificationType.ORDER_READY,
        title="Order Ready",
        message=f"Order for Table {table_number} is ready",
        order_id=order_id,
        table_number=table_number,
    ))


def subscribe_to_notifications(
    store: DocumentStore,
    restaurant_id: str,
    callback: Callable[[List[Notification]], None],
) -> Subscription:
    return subscribe_records(store, restaurant_id, Collection.NOTIFICATIONS, Notification, callback)
