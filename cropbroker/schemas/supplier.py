"""Pydantic schemas for supplier endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field

from cropbroker.schemas.broker import InvoiceResponse


class OrderCreate(BaseModel):
    """Request schema for ordering from an active trade."""

    trade_id: str
    quantity: Decimal = Field(..., gt=0, description="Quantity in quintals")
    price_per_unit: Decimal | None = Field(
        default=None, gt=0, description="Defaults to the trade price"
    )


class NegotiateRequest(BaseModel):
    counter_offer: Decimal = Field(..., gt=0, description="Counter price per quintal")


class InvoiceNumberUpdate(BaseModel):
    invoice_number: str = Field(..., min_length=1)


class InvoiceNumberResponse(BaseModel):
    message: str
    invoice: InvoiceResponse
