"""Dashboard navigation gated by the restaurant's approval flags."""

from dataclasses import dataclass
from typing import List, Optional

from tableat.schemas.restaurant import Restaurant


@dataclass(frozen=True)
class NavEntry:
    title: str
    url: str
    flag: Optional[str] = None


NAV_ENTRIES: tuple = (
    NavEntry("Overview", "/dashboard"),
    NavEntry("Quick Order", "/dashboard/quick-order", "quick_order_approved"),
    NavEntry("Menu Management", "/dashboard/menu"),
    NavEntry("Order History", "/dashboard/orders"),
    NavEntry("Analytics", "/dashboard/analytics", "analytics_approved"),
    NavEntry("Notifications", "/dashboard/notifications"),
    NavEntry("Table Status", "/dashboard/tables"),
    NavEntry("Customers", "/dashboard/customers", "customer_approved"),
    NavEntry("Inventory", "/dashboard/inventory", "inventory_management_approved"),
    NavEntry("Staff Management", "/dashboard/staff", "staff_management_approved"),
    NavEntry("Profile", "/dashboard/profile"),
)


def visible_entries(restaurant: Optional[Restaurant]) -> List[NavEntry]:
    """Entries without a flag, plus those whose flag is exactly True.

    A missing restaurant (not loaded yet) or a missing flag hides the entry.
    """
    visible = []
    for entry in NAV_ENTRIES:
        if entry.flag is None:
            visible.append(entry)
        elif restaurant is not None and getattr(restaurant, entry.flag, None) is True:
            visible.append(entry)
    return visible
