"""API routes."""

import logging
from fastapi import APIRouter

from tableat.api.routes import (
    analytics, billing, customers, menu, notifications, orders, restaurants, tables,
)

logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(restaurants.router, prefix="/restaurants", tags=["restaurants"])

# Collections scoped below one restaurant
scoped = "/restaurants/{restaurant_id}"
api_router.include_router(tables.router, prefix=f"{scoped}/tables", tags=["tables"])
api_router.include_router(menu.router, prefix=f"{scoped}/menu", tags=["menu"])
api_router.include_router(orders.router, prefix=f"{scoped}/orders", tags=["orders"])
api_router.include_router(billing.router, prefix=f"{scoped}/orders", tags=["billing"])
api_router.include_router(customers.router, prefix=f"{scoped}/customers", tags=["customers"])
api_router.include_router(notifications.router, prefix=f"{scoped}/notifications", tags=["notifications"])
api_router.include_router(analytics.router, prefix=f"{scoped}/analytics", tags=["analytics"])
