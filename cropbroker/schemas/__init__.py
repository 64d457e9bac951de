"""Pydantic schemas for request/response validation."""

from cropbroker.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
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
    InvoicePrefillResponse,
    InvoiceRequestResponse,
    InvoiceResponse,
    LogResponse,
    MarkReadRequest,
    MessageResponse,
    NotificationCountResponse,
    NotificationHistoryResponse,
    NotificationResponse,
    OrderResponse,
    OrderStatusUpdate,
    PaymentUpdate,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    SupplierCreate,
    SupplierResponse,
    TradeCreate,
    TradeResponse,
)
from cropbroker.schemas.financer import (
    BuyerCreate,
    BuyerListingResponse,
    BuyerResponse,
    CreditUpdate,
    PurchaseOrderDetail,
)
from cropbroker.schemas.supplier import (
    InvoiceNumberResponse,
    InvoiceNumberUpdate,
    NegotiateRequest,
    OrderCreate,
)
from cropbroker.schemas.webhook import WebhookEnvelope

__all__ = [
    # Auth schemas
    "RegisterRequest",
    "LoginRequest",
    "UserResponse",
    "TokenResponse",
    # Broker schemas
    "TradeCreate",
    "TradeResponse",
    "BroadcastRequest",
    "BroadcastResponse",
    "BroadcastHistoryItem",
    "SupplierCreate",
    "SupplierResponse",
    "OrderResponse",
    "OrderStatusUpdate",
    "CommissionSummaryItem",
    "CommissionOrderItem",
    "PaymentUpdate",
    "PurchaseOrderCreate",
    "PurchaseOrderResponse",
    "LogResponse",
    "NotificationResponse",
    "NotificationCountResponse",
    "NotificationHistoryResponse",
    "MarkReadRequest",
    "MessageResponse",
    "InvoiceItem",
    "InvoiceCreate",
    "InvoiceResponse",
    "InvoiceRequestResponse",
    "InvoiceDraftResponse",
    "InvoicePrefillResponse",
    "InvoiceListItem",
    # Supplier schemas
    "OrderCreate",
    "NegotiateRequest",
    "InvoiceNumberUpdate",
    "InvoiceNumberResponse",
    # Financer schemas
    "BuyerCreate",
    "BuyerResponse",
    "BuyerListingResponse",
    "CreditUpdate",
    "PurchaseOrderDetail",
    # Webhook
    "WebhookEnvelope",
]
