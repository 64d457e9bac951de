"""Broker API endpoints - requires a broker token unless noted."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import FileResponse

from cropbroker.auth import require_broker, require_roles
from cropbroker.config import Settings, get_settings
from cropbroker.models import User, UserRole
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.routers._errors import service_errors
from cropbroker.schemas.broker import (
    BroadcastHistoryItem,
    BroadcastRequest,
    BroadcastResponse,
    CommissionOrderItem,
    CommissionSummaryItem,
    InvoiceCreate,
    InvoiceDraftResponse,
    InvoiceItem,
    InvoiceListItem,
    InvoicePrefillForm,
    InvoicePrefillResponse,
    InvoiceRequestResponse,
    InvoiceResponse,
    InvoiceSupplierInfo,
    LogResponse,
    MarkReadRequest,
    MessageResponse,
    NotificationCountResponse,
    NotificationHistoryResponse,
    NotificationResponse,
    OrderResponse,
    OrderStatusUpdate,
    PartyInfo,
    PaymentUpdate,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    SupplierCreate,
    SupplierResponse,
    TradeCreate,
    TradeResponse,
    TradeSummary,
)
from cropbroker.services import broker as broker_service
from cropbroker.services import credit as credit_service
from cropbroker.services import invoices as invoice_service
from cropbroker.services import negotiation
from cropbroker.services.whatsapp import WhatsAppNotifier, get_notifier

router = APIRouter()


# ============================================================================
# Trade endpoints
# ============================================================================


@router.post(
    "/trade",
    response_model=TradeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a trade",
)
async def create_trade(
    data: TradeCreate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> TradeResponse:
    """Post a crop lot. Suppliers are messaged only when it is broadcast."""
    with service_errors():
        trade = await broker_service.create_trade(
            repos,
            broker,
            crop=data.crop,
            grade=data.grade,
            price=data.price,
            quantity=data.quantity,
            valid_till=data.valid_till,
        )
    return TradeResponse.model_validate(trade)


@router.get("/trades", response_model=list[TradeResponse], summary="List my trades")
async def list_trades(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[TradeResponse]:
    trades = await broker_service.list_trades(repos, broker)
    return [TradeResponse.model_validate(t) for t in trades]


@router.post(
    "/trade/broadcast",
    response_model=BroadcastResponse,
    summary="Broadcast a trade to suppliers",
)
async def broadcast_trade(
    data: BroadcastRequest,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> BroadcastResponse:
    """Send the trade alert and reply instructions to every supplier, once."""
    with service_errors():
        count = await broker_service.broadcast_trade(
            repos, notifier, settings, broker, data.trade_id
        )
    return BroadcastResponse(
        message="Trade broadcasted successfully", supplier_count=count
    )


@router.get(
    "/broadcast-history",
    response_model=list[BroadcastHistoryItem],
    summary="List my broadcasts",
)
async def broadcast_history(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[BroadcastHistoryItem]:
    history = await broker_service.broadcast_history(repos, broker)
    return [
        BroadcastHistoryItem(
            **LogResponse.model_validate(log).model_dump(),
            trade=TradeSummary.model_validate(trade) if trade else None,
        )
        for log, trade in history
    ]


# ============================================================================
# Supplier endpoints
# ============================================================================


@router.post(
    "/supplier",
    response_model=SupplierResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a supplier",
)
async def add_supplier(
    data: SupplierCreate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> SupplierResponse:
    with service_errors():
        supplier = await broker_service.add_supplier(repos, **data.model_dump())
    return SupplierResponse.model_validate(supplier)


@router.get("/suppliers", response_model=list[SupplierResponse], summary="List suppliers")
async def list_suppliers(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[SupplierResponse]:
    suppliers = await broker_service.list_suppliers(repos)
    return [SupplierResponse.model_validate(s) for s in suppliers]


@router.get(
    "/supplier/{supplier_id}",
    response_model=SupplierResponse,
    summary="Get supplier details",
)
async def get_supplier(
    supplier_id: str,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> SupplierResponse:
    with service_errors():
        supplier = await broker_service.get_supplier(repos, supplier_id)
    return SupplierResponse.model_validate(supplier)


# ============================================================================
# Order endpoints
# ============================================================================


@router.put(
    "/orders/{order_id}/confirm",
    response_model=OrderResponse,
    summary="Confirm an order",
)
async def confirm_order(
    order_id: str,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> OrderResponse:
    with service_errors():
        order = await negotiation.confirm_order(repos, notifier, broker, order_id)
    return OrderResponse.model_validate(order)


@router.put(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Advance a confirmed order",
)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> OrderResponse:
    """Move a confirmed order to financed, then delivered, then completed."""
    with service_errors():
        order = await negotiation.advance_order(repos, broker, order_id, data.status)
    return OrderResponse.model_validate(order)


# ============================================================================
# Commission endpoints
# ============================================================================


@router.get(
    "/commissions/summary",
    response_model=list[CommissionSummaryItem],
    summary="Commission totals by payment status",
)
async def commission_summary(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[CommissionSummaryItem]:
    totals = await broker_service.commission_summary(repos, broker)
    return [CommissionSummaryItem.model_validate(t) for t in totals]


@router.get(
    "/commissions/orders",
    response_model=list[CommissionOrderItem],
    summary="Commission per order",
)
async def commission_orders(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[CommissionOrderItem]:
    orders = await broker_service.commission_orders(repos, broker)
    return [CommissionOrderItem.model_validate(o) for o in orders]


@router.put(
    "/commissions/{order_id}/payment",
    response_model=OrderResponse,
    summary="Record a commission payment",
)
async def record_commission_payment(
    order_id: str,
    data: PaymentUpdate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> OrderResponse:
    with service_errors():
        order = await negotiation.record_commission_payment(
            repos, broker, order_id, data.payment_from
        )
    return OrderResponse.model_validate(order)


# ============================================================================
# Purchase order endpoints
# ============================================================================


@router.post(
    "/trades/{trade_id}/purchase-orders",
    response_model=PurchaseOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place a purchase order against a buyer's credit",
)
async def create_purchase_order(
    trade_id: str,
    data: PurchaseOrderCreate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> PurchaseOrderResponse:
    with service_errors():
        po = await credit_service.create_purchase_order(
            repos, notifier, broker, trade_id, data.buyer_id, data.quantity
        )
    return PurchaseOrderResponse.model_validate(po)


# ============================================================================
# Notification endpoints
# ============================================================================


@router.get(
    "/notifications",
    response_model=list[NotificationResponse],
    summary="Unread notifications",
)
async def unread_notifications(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[NotificationResponse]:
    logs = await broker_service.unread_notifications(repos, broker)
    return [NotificationResponse.model_validate(log) for log in logs]


@router.get(
    "/notifications/count",
    response_model=NotificationCountResponse,
    summary="Unread notification count",
)
async def notification_count(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> NotificationCountResponse:
    return NotificationCountResponse(
        count=await broker_service.notification_count(repos, broker)
    )


@router.get(
    "/notifications/history",
    response_model=NotificationHistoryResponse,
    summary="Notification history",
)
async def notification_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> NotificationHistoryResponse:
    with service_errors():
        logs, total, pages = await broker_service.notification_history(
            repos, broker, page, limit
        )
    return NotificationHistoryResponse(
        logs=[NotificationResponse.model_validate(log) for log in logs],
        total=total,
        pages=pages,
        current_page=page,
    )


@router.put(
    "/notifications/read",
    response_model=MessageResponse,
    summary="Mark notifications read",
)
async def mark_notifications_read(
    data: MarkReadRequest,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> MessageResponse:
    await broker_service.mark_notifications_read(repos, broker, data.notification_ids)
    return MessageResponse(message="Notifications marked as read")


@router.get(
    "/logs/accepted-trades",
    response_model=list[LogResponse],
    summary="Trade acceptances",
)
async def accepted_trades(
    user: User = Depends(require_roles(UserRole.BROKER, UserRole.FINANCER)),
    repos: Repositories = Depends(get_repositories),
) -> list[LogResponse]:
    entries = await broker_service.accepted_trade_logs(repos, user)
    return [
        LogResponse.model_validate(log).model_copy(update={"message": message})
        for log, message in entries
    ]


# ============================================================================
# Invoice endpoints
# ============================================================================


@router.get(
    "/invoice/suppliers/{log_id}",
    response_model=InvoicePrefillResponse,
    summary="Invoice defaults for a trade acceptance",
)
async def invoice_prefill(
    log_id: str,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> InvoicePrefillResponse:
    with service_errors():
        prefill = await invoice_service.invoice_prefill(repos, broker, log_id)
    order = prefill.order
    return InvoicePrefillResponse(
        current_supplier=(
            PartyInfo.model_validate(prefill.current_supplier)
            if prefill.current_supplier
            else None
        ),
        log_details=LogResponse.model_validate(prefill.log),
        order=OrderResponse.model_validate(order) if order else None,
        invoice=InvoicePrefillForm(
            bill_from=prefill.bill_from,
            ship_from=prefill.ship_from,
            items=[InvoiceItem.model_validate(item) for item in prefill.items],
            order_id=order.id if order else "",
            total_amount=prefill.total_amount,
            final_amount=prefill.total_amount,
        ),
        available_suppliers=[
            PartyInfo.model_validate(s) for s in prefill.available_suppliers
        ],
    )


@router.post(
    "/invoice",
    response_model=InvoiceRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request an invoice number from the supplier",
)
async def create_invoice_request(
    data: InvoiceCreate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
    notifier: WhatsAppNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> InvoiceRequestResponse:
    with service_errors():
        invoice, link = await invoice_service.create_invoice_request(
            repos, notifier, settings, broker, data
        )
    return InvoiceRequestResponse(
        message="Invoice request created successfully",
        invoice=InvoiceResponse.model_validate(invoice),
        invoice_link=link,
    )


@router.post(
    "/invoice/dummy",
    response_model=InvoiceDraftResponse,
    summary="Generate an invoice PDF",
)
async def create_invoice_draft(
    data: InvoiceCreate,
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> InvoiceDraftResponse:
    with service_errors():
        invoice, link, pdf_url = await invoice_service.create_invoice_draft(
            repos, settings, broker, data
        )
    return InvoiceDraftResponse(
        message="Invoice created successfully",
        invoice=InvoiceResponse.model_validate(invoice),
        invoice_link=link,
        pdf_url=pdf_url,
    )


@router.get("/invoices/{filename}", summary="Download a generated invoice")
async def get_invoice_file(
    filename: str,
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    """Serve a generated PDF by file name. No token is needed for this link."""
    with service_errors():
        path = invoice_service.resolve_invoice_file(settings, filename)
    return FileResponse(
        path,
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename={path.name}"},
    )


@router.get(
    "/invoiceslist/details",
    response_model=list[InvoiceListItem],
    summary="List my invoices",
)
async def list_invoice_details(
    broker: User = Depends(require_broker),
    repos: Repositories = Depends(get_repositories),
) -> list[InvoiceListItem]:
    invoices = await invoice_service.list_invoice_details(repos, broker)
    return [
        InvoiceListItem(
            id=invoice.id,
            invoice_number=invoice.invoice_number or "Not Assigned",
            total_amount=invoice.total_amount,
            supplier=InvoiceSupplierInfo(name=invoice.bill_from, address=invoice.ship_from),
            created_at=invoice.created_at,
        )
        for invoice in invoices
    ]
