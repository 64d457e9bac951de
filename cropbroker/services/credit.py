"""Buyer credit ledger and purchase orders.

Invariant: 0 <= available_credit <= credit_limit for every buyer. Creating a
purchase order and consuming the credit happen in one commit.
"""

import logging
import random
import time
from dataclasses import dataclass
from decimal import Decimal

from cropbroker import telemetry
from cropbroker.models import (
    Buyer,
    BuyerStatus,
    EntityType,
    LogType,
    PurchaseOrder,
    PurchaseOrderStatus,
    User,
)
from cropbroker.repositories import Repositories
from cropbroker.services import activity
from cropbroker.services.errors import AccessDeniedError, NotFoundError
from cropbroker.services.whatsapp import WhatsAppNotifier
from cropbroker.utils import money, new_id

logger = logging.getLogger(__name__)


def generate_po_number() -> str:
    """PO-<epoch milliseconds>-<0..999>."""
    millis = int(time.time() * 1000)
    return f"PO-{millis}-{random.randint(0, 999)}"


async def create_buyer(
    repos: Repositories, financer: User, name: str, credit_limit: Decimal
) -> Buyer:
    if credit_limit < 0:
        raise ValueError("Credit limit cannot be negative")

    limit = money(credit_limit)
    buyer = Buyer(
        id=new_id(),
        financer_id=financer.id,
        name=name,
        credit_limit=limit,
        available_credit=limit,
        status=BuyerStatus.ACTIVE,
    )
    repos.buyers.add(buyer)
    await repos.commit()
    logger.info(
        "Buyer created",
        extra={"buyer_id": buyer.id, "financer_id": financer.id, "credit_limit": float(limit)},
    )
    return buyer


async def list_buyers(repos: Repositories, financer: User) -> list[Buyer]:
    return await repos.buyers.list_for_financer(financer.id)


@dataclass
class BuyerListing:
    """A buyer as offered to brokers, with or without its financing."""

    buyer: Buyer
    with_financing: bool

    @property
    def display_name(self) -> str:
        if not self.with_financing:
            return self.buyer.name
        financer = self.buyer.financer.firm_name if self.buyer.financer else None
        return f"{self.buyer.name} ({financer} Credit limit {self.buyer.credit_limit})"


async def list_all_buyers(repos: Repositories) -> list[BuyerListing]:
    """Every buyer twice: once financed by its financer and once unfinanced."""
    listings = []
    for buyer in await repos.buyers.list_all():
        listings.append(BuyerListing(buyer, with_financing=True))
        listings.append(BuyerListing(buyer, with_financing=False))
    return listings


async def update_credit_limit(
    repos: Repositories, financer: User, buyer_id: str, credit_limit: Decimal
) -> Buyer:
    """Set a new credit limit, shifting available credit by the difference.

    Credit already committed to purchase orders stays committed; the update
    is refused if it would leave less than zero available.
    """
    buyer = await repos.buyers.get(buyer_id)
    if buyer is None:
        raise NotFoundError("Buyer not found")
    if buyer.financer_id != financer.id:
        raise AccessDeniedError("Not authorized to update this buyer")
    if credit_limit < 0:
        raise ValueError("Credit limit cannot be negative")

    new_limit = money(credit_limit)
    available = buyer.available_credit + (new_limit - buyer.credit_limit)
    if available < 0:
        raise ValueError(
            "Credit limit is below the credit already committed to purchase orders"
        )

    buyer.credit_limit = new_limit
    buyer.available_credit = available
    await repos.commit()
    logger.info(
        "Credit limit updated",
        extra={"buyer_id": buyer.id, "credit_limit": float(new_limit)},
    )
    return buyer


async def create_purchase_order(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    broker: User,
    trade_id: str,
    buyer_id: str,
    quantity: Decimal,
) -> PurchaseOrder:
    """Place a purchase order against a buyer's credit.

    Raises:
        NotFoundError: Unknown trade or buyer
        ValueError: Total exceeds the buyer's available credit
    """
    trade = await repos.trades.get(trade_id)
    if trade is None:
        raise NotFoundError("Trade not found")
    buyer = await repos.buyers.get(buyer_id)
    if buyer is None:
        raise NotFoundError("Buyer not found")
    quantity = money(quantity)
    if quantity <= 0:
        raise ValueError("Quantity must be positive")

    total_amount = money(quantity * trade.price)
    if total_amount > buyer.available_credit:
        raise ValueError("Insufficient credit limit")

    latest_order = await repos.orders.latest_for_trade(trade.id)
    po = PurchaseOrder(
        id=new_id(),
        po_number=generate_po_number(),
        trade_id=trade.id,
        buyer_id=buyer.id,
        supplier_id=latest_order.supplier_id if latest_order else None,
        broker_id=broker.id,
        quantity=quantity,
        price_per_unit=trade.price,
        total_amount=total_amount,
        status=PurchaseOrderStatus.PENDING,
    )
    repos.purchase_orders.add(po)
    buyer.available_credit = buyer.available_credit - total_amount
    await repos.commit()

    telemetry.record_purchase_order(total_amount)
    logger.info(
        "Purchase order created",
        extra={
            "po_number": po.po_number,
            "buyer_id": buyer.id,
            "total_amount": float(total_amount),
        },
    )

    await activity.record(
        repos,
        broker_id=broker.id,
        log_type=LogType.PO_CREATED,
        message=f"Purchase order {po.po_number} created for {buyer.name}",
        entity_type=EntityType.PURCHASE_ORDER,
        entity_id=po.id,
        actor=broker,
        details={"total_amount": str(total_amount), "buyer_id": buyer.id},
    )

    if po.supplier_id:
        supplier = await repos.users.get(po.supplier_id)
        await notifier.send_purchase_order(supplier.phone if supplier else None, po)
    return po


async def list_purchase_orders(repos: Repositories, financer: User) -> list[PurchaseOrder]:
    return await repos.purchase_orders.list_for_financer(financer.id)
