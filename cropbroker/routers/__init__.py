"""API routers."""

from cropbroker.routers.auth import router as auth_router
from cropbroker.routers.broker import router as broker_router
from cropbroker.routers.financer import router as financer_router
from cropbroker.routers.supplier import router as supplier_router
from cropbroker.routers.webhook import router as webhook_router

__all__ = [
    "auth_router",
    "broker_router",
    "financer_router",
    "supplier_router",
    "webhook_router",
]
