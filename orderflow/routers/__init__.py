"""
API routers package.
"""
from orderflow.routers.health import router as health_router
from orderflow.routers.loyalty import router as loyalty_router
from orderflow.routers.orders import router as orders_router
from orderflow.routers.payments import router as payments_router
from orderflow.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "orders_router",
    "payments_router",
    "loyalty_router",
    "webhooks_router",
]
