"""Status transition tables.

Every allowed status change is listed here; anything not listed is rejected
with ``InvalidTransitionError``. The chat path adds a stricter guard of its
own (broker acceptance only from ``supplier_accepted``).
"""

import enum

from cropbroker.models import Order, OrderStatus, PaymentStatus, Trade, TradeStatus
from cropbroker.services.errors import InvalidTransitionError

TRADE_TRANSITIONS: dict[TradeStatus, frozenset[TradeStatus]] = {
    TradeStatus.ACTIVE: frozenset(
        {TradeStatus.NEGOTIATING, TradeStatus.CONFIRMED, TradeStatus.EXPIRED}
    ),
    TradeStatus.NEGOTIATING: frozenset({TradeStatus.CONFIRMED, TradeStatus.EXPIRED}),
    TradeStatus.CONFIRMED: frozenset(),
    TradeStatus.EXPIRED: frozenset(),
}

# CONFIRMED -> CONFIRMED is listed: the API confirmation does not guard
# against confirming twice.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.SUPPLIER_ACCEPTED, OrderStatus.NEGOTIATING, OrderStatus.CONFIRMED}
    ),
    OrderStatus.SUPPLIER_ACCEPTED: frozenset(
        {OrderStatus.BROKER_ACCEPTED, OrderStatus.NEGOTIATING, OrderStatus.CONFIRMED}
    ),
    OrderStatus.BROKER_ACCEPTED: frozenset({OrderStatus.CONFIRMED}),
    OrderStatus.NEGOTIATING: frozenset({OrderStatus.NEGOTIATING, OrderStatus.CONFIRMED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.CONFIRMED, OrderStatus.FINANCED}),
    OrderStatus.FINANCED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
}


class CommissionParty(str, enum.Enum):
    """Which side a commission payment came from."""

    SUPPLIER = "supplier"
    BUYER = "buyer"


# (current status, paying party) -> next status. Pairs not listed leave the
# status unchanged, so paying the same side twice is a no-op.
PAYMENT_TRANSITIONS: dict[tuple[PaymentStatus, CommissionParty], PaymentStatus] = {
    (PaymentStatus.PENDING, CommissionParty.SUPPLIER): PaymentStatus.SUPPLIER_COMMISSION_PAID,
    (PaymentStatus.PENDING, CommissionParty.BUYER): PaymentStatus.BUYER_COMMISSION_PAID,
    (PaymentStatus.BUYER_COMMISSION_PAID, CommissionParty.SUPPLIER): PaymentStatus.ALL_PAID,
    (PaymentStatus.SUPPLIER_COMMISSION_PAID, CommissionParty.BUYER): PaymentStatus.ALL_PAID,
}


def can_transition_trade(current: TradeStatus, target: TradeStatus) -> bool:
    return target in TRADE_TRANSITIONS[current]


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def transition_trade(trade: Trade, target: TradeStatus) -> None:
    """Move a trade to ``target`` or raise InvalidTransitionError."""
    if not can_transition_trade(trade.status, target):
        raise InvalidTransitionError(
            f"Cannot move trade from {trade.status.value} to {target.value}"
        )
    trade.status = target


def transition_order(order: Order, target: OrderStatus) -> None:
    """Move an order to ``target`` or raise InvalidTransitionError."""
    if not can_transition_order(order.status, target):
        raise InvalidTransitionError(
            f"Cannot move order from {order.status.value} to {target.value}"
        )
    order.status = target


def next_payment_status(current: PaymentStatus, party: CommissionParty) -> PaymentStatus:
    """Payment status after ``party`` pays its commission."""
    return PAYMENT_TRANSITIONS.get((current, party), current)
