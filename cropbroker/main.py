"""
FastAPI application entry point.

Run with: uvicorn cropbroker.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cropbroker._version import VERSION
from cropbroker.config import get_settings
from cropbroker.database import init_db

# Import models to ensure they're registered with SQLAlchemy
from cropbroker.models import Buyer, Invoice, Log, Order, PurchaseOrder, Trade, User  # noqa: F401
from cropbroker.routers import (
    auth_router,
    broker_router,
    financer_router,
    supplier_router,
    webhook_router,
)
from cropbroker.services.whatsapp import WhatsAppNotifier
from cropbroker import telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup: Create database tables, initialize telemetry, open the WhatsApp client.
    Shutdown: Close the WhatsApp client.
    """
    # Startup
    logging.basicConfig(level=logging.INFO)
    await init_db()
    logger.info("Database initialized")

    if telemetry.setup_telemetry():
        # Attach OTLP handler to root logger for log export
        handler = telemetry.get_log_handler()
        if handler:
            logging.getLogger().addHandler(handler)
            logging.getLogger().setLevel(logging.INFO)
        logger.info("Telemetry initialized (OTLP metrics + logs enabled)")
    else:
        logger.info("Telemetry disabled")

    app.state.notifier = WhatsAppNotifier(get_settings())

    yield

    # Shutdown
    await app.state.notifier.aclose()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title="Crop Brokerage API",
    description="Trades, WhatsApp negotiation, commissions, buyer credit and invoices",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and return a generic 500 body."""
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Register routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(broker_router, prefix="/broker", tags=["broker"])
app.include_router(supplier_router, prefix="/supplier", tags=["supplier"])
app.include_router(financer_router, prefix="/financer", tags=["financer"])
# WhatsApp calls the webhook at the root
app.include_router(webhook_router, tags=["webhook"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/version")
async def get_version():
    """Get API version information."""
    return {
        "version": VERSION,
        "api_version": "v1",
    }
