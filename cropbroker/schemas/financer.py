"""Pydantic schemas for financer endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from cropbroker.models import BuyerStatus
from cropbroker.schemas.broker import PurchaseOrderResponse


class BuyerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    credit_limit: Decimal = Field(..., ge=0)


class CreditUpdate(BaseModel):
    credit_limit: Decimal = Field(..., ge=0)


class BuyerResponse(BaseModel):
    id: str
    financer_id: str
    name: str
    credit_limit: Decimal
    available_credit: Decimal
    status: BuyerStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class FinancerInfo(BaseModel):
    firm_name: str | None
    phone: str | None
    email: str | None

    model_config = {"from_attributes": True}


class BuyerListingResponse(BaseModel):
    """A buyer offered with or without its financer's credit.

    Unfinanced listings carry no credit figures.
    """

    id: str
    name: str
    financer_id: str
    status: BuyerStatus
    with_financing: bool
    credit_limit: Decimal | None = None
    available_credit: Decimal | None = None
    financer_details: FinancerInfo | None = None


class BuyerSummary(BaseModel):
    name: str
    credit_limit: Decimal
    available_credit: Decimal

    model_config = {"from_attributes": True}


class TradeBrief(BaseModel):
    crop: str
    grade: str

    model_config = {"from_attributes": True}


class PurchaseOrderDetail(PurchaseOrderResponse):
    buyer: BuyerSummary | None = None
    trade: TradeBrief | None = None
