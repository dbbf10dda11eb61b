"""Order analytics computed from an orders snapshot and the menu.

Revenue only counts served orders. Everything here is a pure function of
its inputs so the same figures can be recomputed on every snapshot.
"""

import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from tableat.core.config import settings
from tableat.schemas.base import as_utc, utcnow
from tableat.schemas.menu import MenuItem
from tableat.schemas.order import OPEN_ORDER_STATUSES, Order, OrderSource, OrderStatus

MAX_DAILY_POINTS = 30
DEFAULT_DAILY_POINTS = 7


def _local_day(moment: datetime) -> date:
    return as_utc(moment).astimezone(settings.tzinfo).date()


def filter_orders(
    orders: List[Order],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    menu_item_id: Optional[str] = None,
) -> List[Order]:
    selected = []
    for order in orders:
        created = as_utc(order.created_at) if order.created_at else None
        if start and (created is None or created < as_utc(start)):
            continue
        if end and (created is None or created > as_utc(end)):
            continue
        if menu_item_id and not any(item.menu_item_id == menu_item_id for item in order.items):
            continue
        selected.append(order)
    return selected


def _breakdown(orders: List[Order], key) -> Dict[str, Dict[str, float]]:
    groups: Dict[str, Dict[str, float]] = defaultdict(lambda: {"count": 0, "revenue": 0.0})
    for order in orders:
        bucket = groups[key(order)]
        bucket["count"] += 1
        bucket["revenue"] += order.total_amount
    return groups


def _daily_days(start: Optional[datetime], end: Optional[datetime], now: datetime) -> List[date]:
    if start and end:
        span = (as_utc(end) - as_utc(start)).total_seconds() / 86400
        count = min(max(1, math.ceil(span)), MAX_DAILY_POINTS)
        first = _local_day(start)
        return [first + timedelta(days=i) for i in range(count)]
    last = _local_day(now)
    return [last - timedelta(days=i) for i in reversed(range(DEFAULT_DAILY_POINTS))]


def order_analytics(
    orders: List[Order],
    menu_items: List[MenuItem],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    menu_item_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Revenue, popular items and breakdowns for the selected orders."""
    now = now or utcnow()
    selected = filter_orders(orders, start, end, menu_item_id)
    served = [o for o in selected if o.status == OrderStatus.SERVED]
    total_revenue = round(sum(o.total_amount for o in served), 2)

    categories = {item.id: item.category for item in menu_items}
    item_sales: Dict[str, Dict[str, Any]] = {}
    category_sales: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "count": 0})
    for order in served:
        for item in order.items:
            line_total = item.price * item.quantity
            sales = item_sales.setdefault(
                item.menu_item_id, {"id": item.menu_item_id, "name": item.name, "quantity": 0, "revenue": 0.0}
            )
            sales["quantity"] += item.quantity
            sales["revenue"] += line_total
            category = category_sales[categories.get(item.menu_item_id) or "Other"]
            category["revenue"] += line_total
            category["count"] += item.quantity

    popular_items = sorted(item_sales.values(), key=lambda s: s["quantity"], reverse=True)
    category_revenue = sorted(
        ({"category": name, **data} for name, data in category_sales.items()),
        key=lambda c: c["revenue"],
        reverse=True,
    )

    daily_revenue = []
    for day in _daily_days(start, end, now):
        day_orders = [o for o in served if o.created_at and _local_day(o.created_at) == day]
        daily_revenue.append({
            "date": day.isoformat(),
            "label": day.strftime("%a, %b %d"),
            "revenue": round(sum(o.total_amount for o in day_orders), 2),
            "orders": len(day_orders),
        })

    payments = _breakdown(served, lambda o: o.payment_method or "cash")
    payment_methods = sorted(
        ({"method": method, **data} for method, data in payments.items()),
        key=lambda p: p["revenue"],
        reverse=True,
    )
    sources = _breakdown(served, lambda o: o.order_source or OrderSource.DIRECT_ORDER.value)
    order_sources = sorted(
        (
            {
                "source": "Quick Order" if key == OrderSource.QUICK_ORDER.value else "Regular Order",
                "source_key": key,
                **data,
            }
            for key, data in sources.items()
        ),
        key=lambda s: s["revenue"],
        reverse=True,
    )

    return {
        "total_revenue": total_revenue,
        "average_order_value": round(total_revenue / len(served), 2) if served else 0,
        "popular_items": popular_items,
        "daily_revenue": daily_revenue,
        "category_revenue": category_revenue,
        "payment_methods": payment_methods,
        "order_sources": order_sources,
        "total_orders": len(selected),
        "completed_orders": len(served),
        "pending_orders": sum(1 for o in selected if o.status in OPEN_ORDER_STATUSES),
        "date_range": {"start": start, "end": end} if start and end else None,
    }
