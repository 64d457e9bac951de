"""Negotiation engine: supplier responses, broker acceptance and commissions.

Order creation, the log entry and the outbound notification are committed
and sent one after another. A failure part way through leaves the earlier
steps in place.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from cropbroker import telemetry
from cropbroker.config import Settings
from cropbroker.models import (
    EntityType,
    LogType,
    Order,
    OrderStatus,
    Trade,
    TradeStatus,
    User,
    UserRole,
)
from cropbroker.repositories import Repositories
from cropbroker.services import activity
from cropbroker.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NegotiationError,
    NotFoundError,
)
from cropbroker.services.transitions import (
    CommissionParty,
    next_payment_status,
    transition_order,
    transition_trade,
)
from cropbroker.services.whatsapp import WhatsAppNotifier
from cropbroker.utils import money, new_id

logger = logging.getLogger(__name__)

TRADE_NOT_FOUND = "Trade not found"
TRADE_NOT_ACTIVE = "This trade is no longer active"
ORDER_NOT_FOUND = "Order not found"
NOT_ORDER_BROKER = "You are not authorized to respond to this order"
INVALID_ACCEPT_STATUS = "Invalid order status for acceptance"
INVALID_PRICE = "Please provide a valid price"

# Statuses a confirmed order moves through after the deal is struck
FULFILMENT_STATUSES = frozenset(
    {
        OrderStatus.FINANCED,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
    }
)


@dataclass(frozen=True)
class Commission:
    """Commission split for one order."""

    supplier_rate: Decimal
    supplier_amount: Decimal
    buyer_rate: Decimal
    buyer_amount: Decimal

    @property
    def total(self) -> Decimal:
        return self.supplier_amount + self.buyer_amount


def compute_commission(
    total_amount: Decimal, supplier_rate: Decimal, buyer_rate: Decimal
) -> Commission:
    """Split commission on ``total_amount``; rates are percentages.

    Each side is rounded half-up to two places before summing.
    """
    return Commission(
        supplier_rate=Decimal(supplier_rate),
        supplier_amount=money(total_amount * supplier_rate / 100),
        buyer_rate=Decimal(buyer_rate),
        buyer_amount=money(total_amount * buyer_rate / 100),
    )


def _new_order(
    trade: Trade,
    supplier: User,
    price_per_unit: Decimal,
    rate: Decimal,
    status: OrderStatus,
    counter_offer: Decimal | None = None,
    quantity: Decimal | None = None,
) -> Order:
    quantity = trade.quantity if quantity is None else money(quantity)
    price_per_unit = money(price_per_unit)
    total_amount = money(price_per_unit * quantity)
    commission = compute_commission(total_amount, rate, rate)
    return Order(
        id=new_id(),
        trade_id=trade.id,
        supplier_id=supplier.id,
        broker_id=trade.broker_id,
        quantity=quantity,
        price_per_unit=price_per_unit,
        total_amount=total_amount,
        supplier_commission_rate=commission.supplier_rate,
        supplier_commission_amount=commission.supplier_amount,
        buyer_commission_rate=commission.buyer_rate,
        buyer_commission_amount=commission.buyer_amount,
        total_commission=commission.total,
        status=status,
        counter_offer=None if counter_offer is None else money(counter_offer),
    )


async def _open_trade(repos: Repositories, trade_id: str) -> Trade:
    trade = await repos.trades.get(trade_id)
    if trade is None:
        raise NegotiationError(TRADE_NOT_FOUND)
    if trade.status != TradeStatus.ACTIVE:
        raise NegotiationError(TRADE_NOT_ACTIVE)
    return trade


async def _broker_phone(repos: Repositories, trade: Trade) -> str | None:
    broker = await repos.users.get(trade.broker_id)
    return broker.phone if broker else None


# ============================================================================
# Supplier responses
# ============================================================================


async def accept_trade(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    settings: Settings,
    supplier: User,
    trade_id: str,
) -> Order:
    """Accept a trade at its listed price.

    The order starts as ``supplier_accepted`` and carries the default
    commission rate on both sides. The trade itself stays ``active`` so
    other suppliers can still respond.

    Raises:
        NegotiationError: Unknown or no longer active trade
    """
    trade = await _open_trade(repos, trade_id)

    order = _new_order(
        trade,
        supplier,
        price_per_unit=trade.price,
        rate=settings.default_commission_rate,
        status=OrderStatus.SUPPLIER_ACCEPTED,
    )
    repos.orders.add(order)
    await repos.commit()

    telemetry.record_order_created(order.status.value, order.total_commission)
    logger.info(
        "Trade accepted",
        extra={
            "trade_id": trade.id,
            "order_id": order.id,
            "supplier_id": supplier.id,
            "total_amount": float(order.total_amount),
        },
    )

    await activity.record(
        repos,
        broker_id=trade.broker_id,
        log_type=LogType.TRADE_ACCEPT,
        message=f"Supplier {supplier.firm_name} accepted trade for {trade.crop}",
        entity_type=EntityType.TRADE,
        entity_id=trade.id,
        actor=supplier,
        details={
            "crop": trade.crop,
            "quantity": str(trade.quantity),
            "price": str(trade.price),
            "total_amount": str(order.total_amount),
        },
    )

    await notifier.send_order_confirmation(await _broker_phone(repos, trade), order)
    return order


async def counter_offer(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    supplier: User,
    trade_id: str,
    price: Decimal,
) -> Order:
    """Counter a trade with a lower per-quintal price.

    Counter-offer orders carry no commission. The trade moves to
    ``negotiating``, which closes it to further responses.

    Raises:
        NegotiationError: Unknown or inactive trade, or price not below the listed price
    """
    trade = await _open_trade(repos, trade_id)

    price = money(price)
    if price <= 0:
        raise NegotiationError(INVALID_PRICE)
    if price >= trade.price:
        raise NegotiationError(
            "Counter offer must be lower than the original price. "
            f"Current price: ₹{trade.price}/qtl"
        )

    order = _new_order(
        trade,
        supplier,
        price_per_unit=price,
        rate=Decimal("0"),
        status=OrderStatus.NEGOTIATING,
        counter_offer=price,
    )
    repos.orders.add(order)
    transition_trade(trade, TradeStatus.NEGOTIATING)
    await repos.commit()

    telemetry.record_order_created(order.status.value, order.total_commission)
    logger.info(
        "Counter offer received",
        extra={
            "trade_id": trade.id,
            "order_id": order.id,
            "supplier_id": supplier.id,
            "counter_offer": float(price),
        },
    )

    await activity.record(
        repos,
        broker_id=trade.broker_id,
        log_type=LogType.COUNTER_OFFER,
        message=f"Supplier made counter offer of ₹{price}/qtl",
        entity_type=EntityType.ORDER,
        entity_id=order.id,
        actor=supplier,
        details={
            "original_price": str(trade.price),
            "counter_offer": str(price),
            "quantity": str(trade.quantity),
        },
    )

    await notifier.send_negotiation_update(await _broker_phone(repos, trade), order)
    return order


async def place_order(
    repos: Repositories,
    settings: Settings,
    supplier: User,
    trade_id: str,
    quantity: Decimal,
    price_per_unit: Decimal | None = None,
) -> Order:
    """Create a pending order for part or all of an active trade.

    The listed price applies when ``price_per_unit`` is omitted.
    """
    trade = await repos.trades.get(trade_id)
    if trade is None:
        raise NotFoundError("Trade not found")
    if trade.status != TradeStatus.ACTIVE:
        raise ValueError(TRADE_NOT_ACTIVE)
    quantity = money(quantity)
    if quantity <= 0:
        raise ValueError("Quantity must be positive")
    if quantity > trade.quantity:
        raise ValueError(
            f"Quantity exceeds the trade quantity of {trade.quantity} qtl"
        )
    price_per_unit = trade.price if price_per_unit is None else money(price_per_unit)
    if price_per_unit <= 0:
        raise ValueError("Price must be positive")

    order = _new_order(
        trade,
        supplier,
        price_per_unit=price_per_unit,
        rate=settings.default_commission_rate,
        status=OrderStatus.PENDING,
        quantity=quantity,
    )
    repos.orders.add(order)
    await repos.commit()
    telemetry.record_order_created(order.status.value, order.total_commission)
    return order


# ============================================================================
# Broker decisions
# ============================================================================


async def broker_accept(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    broker: User,
    order_id: str,
) -> Order:
    """Confirm a supplier-accepted order from the chat channel.

    Raises:
        NegotiationError: Unknown order, foreign order or wrong status
    """
    order = await repos.orders.get(order_id)
    if order is None:
        raise NegotiationError(ORDER_NOT_FOUND)
    if order.broker_id != broker.id:
        raise NegotiationError(NOT_ORDER_BROKER)
    if order.status != OrderStatus.SUPPLIER_ACCEPTED:
        raise NegotiationError(INVALID_ACCEPT_STATUS)

    transition_order(order, OrderStatus.CONFIRMED)
    await repos.commit()
    telemetry.record_order_confirmed("chat")
    logger.info("Order confirmed", extra={"order_id": order.id, "channel": "chat"})

    await activity.record(
        repos,
        broker_id=broker.id,
        log_type=LogType.ORDER_CONFIRMED,
        message=f"Broker confirmed order {order.id}",
        entity_type=EntityType.ORDER,
        entity_id=order.id,
        actor=broker,
        details={"total_amount": str(order.total_amount)},
    )

    supplier = await repos.users.get(order.supplier_id)
    await notifier.send_broker_acceptance(supplier.phone if supplier else None, order)
    return order


async def _broker_order(repos: Repositories, broker: User, order_id: str) -> Order:
    order = await repos.orders.get(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.broker_id != broker.id:
        raise AccessDeniedError("Not authorized to modify this order")
    return order


async def confirm_order(
    repos: Repositories, notifier: WhatsAppNotifier, broker: User, order_id: str
) -> Order:
    """Confirm an order through the API.

    Unlike the chat path this accepts any status the transition table lets
    reach ``confirmed``, including an order that is already confirmed.
    """
    order = await _broker_order(repos, broker, order_id)
    transition_order(order, OrderStatus.CONFIRMED)
    await repos.commit()
    telemetry.record_order_confirmed("api")
    logger.info("Order confirmed", extra={"order_id": order.id, "channel": "api"})

    supplier = await repos.users.get(order.supplier_id)
    await notifier.send_order_confirmation(supplier.phone if supplier else None, order)
    return order


async def advance_order(
    repos: Repositories, broker: User, order_id: str, target: OrderStatus
) -> Order:
    """Move a confirmed order through financed, delivered and completed."""
    order = await _broker_order(repos, broker, order_id)
    if target not in FULFILMENT_STATUSES:
        raise InvalidTransitionError(
            f"Cannot move order from {order.status.value} to {target.value}"
        )
    transition_order(order, target)
    await repos.commit()
    logger.info(
        "Order status updated", extra={"order_id": order.id, "status": target.value}
    )
    return order


async def negotiate_order(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    supplier: User,
    order_id: str,
    counter_price: Decimal,
) -> Order:
    """Revise the counter offer on one of the supplier's own orders.

    Only the counter offer and the status change; price, total and commission
    amounts stay as they were computed at creation.
    """
    if supplier.role != UserRole.SUPPLIER:
        raise AccessDeniedError("Only suppliers can negotiate orders")
    order = await repos.orders.get(order_id)
    if order is None or order.supplier_id != supplier.id:
        raise NotFoundError("Order not found")
    counter_price = money(counter_price)
    if counter_price <= 0:
        raise ValueError("Counter offer must be positive")

    transition_order(order, OrderStatus.NEGOTIATING)
    order.counter_offer = counter_price
    await repos.commit()

    broker = await repos.users.get(order.broker_id)
    await notifier.send_negotiation_update(broker.phone if broker else None, order)
    return order


async def record_commission_payment(
    repos: Repositories, broker: User, order_id: str, party: CommissionParty
) -> Order:
    """Mark one side's commission as paid.

    Paying a side that is already paid leaves the status unchanged.
    """
    order = await _broker_order(repos, broker, order_id)
    order.payment_status = next_payment_status(order.payment_status, party)
    await repos.commit()
    logger.info(
        "Commission payment recorded",
        extra={
            "order_id": order.id,
            "party": party.value,
            "payment_status": order.payment_status.value,
        },
    )
    return order
