"""Pydantic schemas for broker endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from cropbroker.models import (
    ActorType,
    EntityType,
    InvoiceStatus,
    LogType,
    OrderStatus,
    PaymentStatus,
    PurchaseOrderStatus,
    TradeStatus,
)
from cropbroker.services.transitions import CommissionParty


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# Trade schemas
# ============================================================================


class TradeCreate(BaseModel):
    """Request schema for posting a trade."""

    crop: str = Field(..., min_length=1, description="Crop name, e.g. Wheat")
    grade: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, description="Price per quintal")
    quantity: Decimal = Field(..., gt=0, description="Quantity in quintals")
    valid_till: datetime = Field(..., description="Deadline for supplier responses")


class TradeResponse(BaseModel):
    id: str
    crop: str
    grade: str
    price: Decimal
    quantity: Decimal
    valid_till: datetime
    status: TradeStatus
    broker_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TradeSummary(BaseModel):
    """Trade fields shown alongside orders and logs."""

    crop: str
    grade: str
    price: Decimal
    quantity: Decimal
    valid_till: datetime

    model_config = {"from_attributes": True}


class BroadcastRequest(BaseModel):
    trade_id: str = Field(..., min_length=1)


class BroadcastResponse(BaseModel):
    message: str
    supplier_count: int


# ============================================================================
# Supplier schemas
# ============================================================================


class SupplierCreate(BaseModel):
    """Request schema for adding a WhatsApp-only supplier."""

    firm_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=10)
    address: str | None = None
    pan_number: str | None = None
    aadhar_number: str | None = None
    upi_id: str | None = None
    bank_info: dict[str, Any] | None = None


class SupplierResponse(BaseModel):
    id: str
    firm_name: str | None
    phone: str | None
    address: str | None
    email: str | None
    pan_number: str | None
    aadhar_number: str | None
    upi_id: str | None
    bank_info: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PartyInfo(BaseModel):
    """Contact details of a user attached to another record."""

    id: str
    firm_name: str | None
    phone: str | None
    address: str | None = None

    model_config = {"from_attributes": True}


# ============================================================================
# Order schemas
# ============================================================================


class OrderResponse(BaseModel):
    id: str
    trade_id: str
    supplier_id: str
    broker_id: str
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    supplier_commission_rate: Decimal
    supplier_commission_amount: Decimal
    buyer_commission_rate: Decimal
    buyer_commission_amount: Decimal
    total_commission: Decimal
    status: OrderStatus
    counter_offer: Decimal | None
    payment_status: PaymentStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class CommissionSummaryItem(BaseModel):
    payment_status: PaymentStatus
    total_supplier_commission: Decimal
    total_buyer_commission: Decimal
    total_commission: Decimal

    model_config = {"from_attributes": True}


class CommissionOrderItem(BaseModel):
    """Commission view of one settled order."""

    id: str
    trade_id: str
    supplier_commission_amount: Decimal
    buyer_commission_amount: Decimal
    total_commission: Decimal
    payment_status: PaymentStatus
    status: OrderStatus
    created_at: datetime
    supplier: PartyInfo | None = None
    trade: TradeSummary | None = None

    model_config = {"from_attributes": True}


class PaymentUpdate(BaseModel):
    payment_from: CommissionParty


# ============================================================================
# Purchase order schemas
# ============================================================================


class PurchaseOrderCreate(BaseModel):
    buyer_id: str
    quantity: Decimal = Field(..., gt=0, description="Quantity in quintals")


class PurchaseOrderResponse(BaseModel):
    id: str
    po_number: str
    trade_id: str
    buyer_id: str
    supplier_id: str | None
    broker_id: str
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    status: PurchaseOrderStatus
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Notification (log) schemas
# ============================================================================


class LogResponse(BaseModel):
    id: str
    broker_id: str
    type: LogType
    message: str
    entity_type: EntityType
    entity_id: str
    actor_id: str
    actor_type: ActorType
    read: bool
    details: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationResponse(LogResponse):
    actor: PartyInfo | None = None


class NotificationCountResponse(BaseModel):
    count: int


class NotificationHistoryResponse(BaseModel):
    logs: list[NotificationResponse]
    total: int
    pages: int
    current_page: int


class MarkReadRequest(BaseModel):
    notification_ids: list[str] = Field(default_factory=list)


class BroadcastHistoryItem(LogResponse):
    trade: TradeSummary | None = None


# ============================================================================
# Invoice schemas
# ============================================================================


class InvoiceItem(BaseModel):
    crop: str
    price: Decimal
    quantity: Decimal
    total_amount: Decimal


class InvoiceCreate(BaseModel):
    """Request schema for an invoice request or a generated invoice."""

    order_id: str
    bill_from: str
    ship_from: str
    ship_to: str
    bill_to: str
    items: list[InvoiceItem] = Field(default_factory=list)
    total_amount: Decimal = Field(..., ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_charges: Decimal = Field(default=Decimal("0"), ge=0)
    final_amount: Decimal = Field(..., ge=0)
    po_number: str | None = None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str | None
    order_id: str
    supplier_id: str | None
    broker_id: str
    bill_from: str
    ship_from: str
    ship_to: str
    bill_to: str
    items: list[InvoiceItem]
    total_amount: Decimal
    tax_amount: Decimal
    shipping_charges: Decimal
    final_amount: Decimal
    po_number: str | None
    status: InvoiceStatus
    file_path: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceRequestResponse(BaseModel):
    message: str
    invoice: InvoiceResponse
    invoice_link: str


class InvoiceDraftResponse(InvoiceRequestResponse):
    pdf_url: str


class InvoicePrefillForm(BaseModel):
    bill_from: str
    ship_from: str
    items: list[InvoiceItem]
    order_id: str
    total_amount: Decimal
    tax_amount: Decimal = Decimal("0")
    shipping_charges: Decimal = Decimal("0")
    final_amount: Decimal


class InvoicePrefillResponse(BaseModel):
    current_supplier: PartyInfo | None
    log_details: LogResponse
    order: OrderResponse | None
    invoice: InvoicePrefillForm
    available_suppliers: list[PartyInfo]


class InvoiceSupplierInfo(BaseModel):
    name: str
    address: str


class InvoiceListItem(BaseModel):
    id: str
    invoice_number: str
    total_amount: Decimal
    supplier: InvoiceSupplierInfo
    created_at: datetime
