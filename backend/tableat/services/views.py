"""Derived view state for the dashboard surfaces.

Each reducer is a pure function ``(records, filters) -> view model``.
``LiveView`` binds one to a live subscription: it caches the latest records
and recomputes the model synchronously on every delivery and on every
filter change, so the model never lags behind either input.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from tableat.db.store import Subscription
from tableat.schemas.customer import Customer
from tableat.schemas.menu import MenuItem
from tableat.schemas.notification import Notification
from tableat.schemas.order import Order, OrderStatus
from tableat.schemas.table import Table
from tableat.services.customer_service import LOYAL_MIN_ORDERS

logger = logging.getLogger(__name__)

R = TypeVar("R")
M = TypeVar("M")


# ---------------------------------------------------------------------------
# View models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TablesView:
    tables: List[Table]
    total: int
    occupied: int
    available: int


@dataclass(frozen=True)
class CustomersView:
    customers: List[Customer]
    total: int
    total_orders: int
    average_orders: float
    loyal: int


@dataclass(frozen=True)
class NotificationsView:
    notifications: List[Notification]
    total: int
    unread: int


@dataclass(frozen=True)
class OrdersView:
    orders: List[Order]
    total: int
    by_status: Dict[str, int]


@dataclass(frozen=True)
class MenuView:
    items: List[MenuItem]
    total: int
    available: int
    best_sellers: int
    categories: List[str]


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------

def tables_view(tables: List[Table], filters: Optional[Dict[str, Any]] = None) -> TablesView:
    filters = filters or {}
    occupied = sum(1 for t in tables if t.occupied)
    shown = tables
    if filters.get("occupied") is not None:
        shown = [t for t in tables if t.occupied == filters["occupied"]]
    return TablesView(tables=list(shown), total=len(tables), occupied=occupied, available=len(tables) - occupied)


def customers_view(customers: List[Customer], filters: Optional[Dict[str, Any]] = None) -> CustomersView:
    """Search matches the name case-insensitively or the phone as typed.

    Counters describe the matching customers.
    """
    filters = filters or {}
    term = (filters.get("search") or "").strip()
    if term:
        lowered = term.lower()
        shown = [c for c in customers if lowered in c.name.lower() or term in c.phone]
    else:
        shown = list(customers)
    total_orders = sum(c.total_orders for c in shown)
    return CustomersView(
        customers=shown,
        total=len(shown),
        total_orders=total_orders,
        average_orders=round(total_orders / len(shown), 1) if shown else 0.0,
        loyal=sum(1 for c in shown if c.total_orders >= LOYAL_MIN_ORDERS),
    )


def notifications_view(
    notifications: List[Notification],
    filters: Optional[Dict[str, Any]] = None,
) -> NotificationsView:
    filters = filters or {}
    unread = sum(1 for n in notifications if not n.is_read)
    shown = [n for n in notifications if not n.is_read] if filters.get("unread_only") else list(notifications)
    return NotificationsView(notifications=shown, total=len(notifications), unread=unread)


def orders_view(orders: List[Order], filters: Optional[Dict[str, Any]] = None) -> OrdersView:
    filters = filters or {}
    by_status = {status.value: 0 for status in OrderStatus}
    for order in orders:
        by_status[order.status] = by_status.get(order.status, 0) + 1
    shown = list(orders)
    status = filters.get("status")
    if status:
        shown = [o for o in shown if o.status == status]
    table_number = filters.get("table_number")
    if table_number is not None:
        shown = [o for o in shown if o.table_number == table_number]
    return OrdersView(orders=shown, total=len(orders), by_status=by_status)


def menu_view(items: List[MenuItem], filters: Optional[Dict[str, Any]] = None) -> MenuView:
    filters = filters or {}
    categories = sorted({item.category for item in items})
    shown = list(items)
    category = filters.get("category")
    if category:
        shown = [i for i in shown if i.category == category]
    term = (filters.get("search") or "").strip().lower()
    if term:
        shown = [i for i in shown if term in i.name.lower()]
    return MenuView(
        items=shown,
        total=len(items),
        available=sum(1 for i in items if i.available),
        best_sellers=sum(1 for i in items if i.is_best_seller),
        categories=categories,
    )


# ---------------------------------------------------------------------------
# Live binding
# ---------------------------------------------------------------------------

class LiveView(Generic[R, M]):
    """Latest records of one subscription plus the model derived from them.

    Usage::

        view = LiveView(tables_view)
        view.bind(table_service.subscribe_to_tables(store, rid, view.on_snapshot))
        ...
        view.close()
    """

    def __init__(
        self,
        reducer: Callable[[List[R], Dict[str, Any]], M],
        filters: Optional[Dict[str, Any]] = None,
        on_change: Optional[Callable[[M], None]] = None,
    ):
        self._reducer = reducer
        self._filters: Dict[str, Any] = dict(filters or {})
        self._on_change = on_change
        self._lock = threading.Lock()
        self._records: Optional[List[R]] = None
        self._state: Optional[M] = None
        self._subscription: Optional[Subscription] = None
        self.deliveries = 0

    def bind(self, subscription: Subscription) -> "LiveView[R, M]":
        self._subscription = subscription
        return self

    @property
    def loaded(self) -> bool:
        return self._records is not None

    @property
    def state(self) -> Optional[M]:
        return self._state

    @property
    def filters(self) -> Dict[str, Any]:
        return dict(self._filters)

    def on_snapshot(self, records: List[R]) -> None:
        with self._lock:
            self._records = list(records)
            self.deliveries += 1
            state = self._recompute()
        self._emit(state)

    def set_filters(self, **changes: Any) -> Optional[M]:
        with self._lock:
            self._filters.update(changes)
            state = self._recompute()
        self._emit(state)
        return state

    def _recompute(self) -> Optional[M]:
        if self._records is None:
            return None
        self._state = self._reducer(self._records, self._filters)
        return self._state

    def _emit(self, state: Optional[M]) -> None:
        if state is not None and self._on_change is not None:
            self._on_change(state)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()

    def __enter__(self) -> "LiveView[R, M]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
