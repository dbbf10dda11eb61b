"""Notification routes."""

from fastapi import APIRouter, Query, Request, status

from tableat.api.deps import Store
from tableat.core.rate_limit import limiter
from tableat.core.responses import list_response, write_response
from tableat.schemas.notification import NotificationCreate
from tableat.services import notification_service, views

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_notifications(
    request: Request,
    store: Store,
    restaurant_id: str,
    unread_only: bool = Query(False),
):
    view = views.notifications_view(
        notification_service.list_notifications(store, restaurant_id),
        {"unread_only": unread_only},
    )
    return list_response(
        [n.model_dump(mode="json") for n in view.notifications],
        total=view.total,
        unread=view.unread,
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_notification(request: Request, store: Store, restaurant_id: str, data: NotificationCreate):
    return write_response(notification_service.create_notification(store, restaurant_id, data))


@router.post("/read-all")
@limiter.limit("30/minute")
def mark_all_read(request: Request, store: Store, restaurant_id: str):
    return write_response(updated=notification_service.mark_all_read(store, restaurant_id))


@router.post("/{notification_id}/read")
@limiter.limit("60/minute")
def mark_read(request: Request, store: Store, restaurant_id: str, notification_id: str):
    changed = notification_service.mark_notification_read(store, restaurant_id, notification_id)
    return write_response(notification_id, changed=changed)
