"""Supplier API endpoints - requires a supplier token."""

from fastapi import APIRouter, Depends, status

from cropbroker.auth import require_supplier
from cropbroker.config import Settings, get_settings
from cropbroker.models import User
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.routers._errors import service_errors
from cropbroker.schemas.broker import InvoiceResponse, OrderResponse, TradeResponse
from cropbroker.schemas.supplier import (
    InvoiceNumberResponse,
    InvoiceNumberUpdate,
    NegotiateRequest,
    OrderCreate,
)
from cropbroker.services import broker as broker_service
from cropbroker.services import invoices as invoice_service
from cropbroker.services import negotiation
from cropbroker.services.whatsapp import WhatsAppNotifier, get_notifier

router = APIRouter()


@router.get("/trades", response_model=list[TradeResponse], summary="List active trades")
async def list_active_trades(
    supplier: User = Depends(require_supplier),
    repos: Repositories = Depends(get_repositories),
) -> list[TradeResponse]:
    trades = await broker_service.list_active_trades(repos)
    return [TradeResponse.model_validate(t) for t in trades]


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Order from an active trade",
)
async def place_order(
    data: OrderCreate,
    supplier: User = Depends(require_supplier),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> OrderResponse:
    with service_errors():
        order = await negotiation.place_order(
            repos,
            settings,
            supplier,
            data.trade_id,
            data.quantity,
            data.price_per_unit,
        )
    return OrderResponse.model_validate(order)


@router.put(
    "/orders/{order_id}/negotiate",
    response_model=OrderResponse,
    summary="Revise my counter offer",
)
async def negotiate_order(
    order_id: str,
    data: NegotiateRequest,
    supplier: User = Depends(require_supplier),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> OrderResponse:
    with service_errors():
        order = await negotiation.negotiate_order(
            repos, notifier, supplier, order_id, data.counter_offer
        )
    return OrderResponse.model_validate(order)


@router.put(
    "/invoice/{invoice_id}/number",
    response_model=InvoiceNumberResponse,
    summary="Set my invoice number",
)
async def set_invoice_number(
    invoice_id: str,
    data: InvoiceNumberUpdate,
    supplier: User = Depends(require_supplier),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> InvoiceNumberResponse:
    """Record the supplier's own invoice number; it can only be set once."""
    with service_errors():
        invoice = await invoice_service.set_invoice_number(
            repos, notifier, supplier, invoice_id, data.invoice_number
        )
    return InvoiceNumberResponse(
        message="Invoice number updated successfully",
        invoice=InvoiceResponse.model_validate(invoice),
    )
