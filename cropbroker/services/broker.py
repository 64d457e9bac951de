"""Broker workflows: trades, broadcasts, suppliers, notifications and commissions."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from cropbroker import telemetry
from cropbroker.config import Settings
from cropbroker.models import (
    EntityType,
    Log,
    LogType,
    Order,
    OrderStatus,
    PaymentStatus,
    Trade,
    TradeStatus,
    User,
    UserRole,
)
from cropbroker.repositories import Repositories
from cropbroker.services import activity
from cropbroker.services.errors import AccessDeniedError, NotFoundError
from cropbroker.services.transitions import transition_trade
from cropbroker.services.whatsapp import WhatsAppNotifier
from cropbroker.utils import money, new_id, normalize_phone, to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Orders that count towards commission earned
COMMISSION_STATUSES = [
    OrderStatus.CONFIRMED,
    OrderStatus.FINANCED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
]


# ============================================================================
# Trades
# ============================================================================


async def create_trade(
    repos: Repositories,
    broker: User,
    crop: str,
    grade: str,
    price: Decimal,
    quantity: Decimal,
    valid_till: datetime,
) -> Trade:
    """Post a new active trade.

    Suppliers are not messaged here; that happens on broadcast.
    """
    price = money(price)
    quantity = money(quantity)
    if price <= 0:
        raise ValueError("Price must be positive")
    if quantity <= 0:
        raise ValueError("Quantity must be positive")

    trade = Trade(
        id=new_id(),
        crop=crop,
        grade=grade,
        price=price,
        quantity=quantity,
        valid_till=to_naive_utc(valid_till),
        status=TradeStatus.ACTIVE,
        broker_id=broker.id,
    )
    repos.trades.add(trade)
    await activity.record(
        repos,
        broker_id=broker.id,
        log_type=LogType.TRADE_CREATED,
        message=f"Trade created for {crop} ({grade})",
        entity_type=EntityType.TRADE,
        entity_id=trade.id,
        actor=broker,
        details={"price": str(trade.price), "quantity": str(quantity)},
    )

    telemetry.record_trade_created(crop)
    logger.info(
        "Trade created",
        extra={"trade_id": trade.id, "broker_id": broker.id, "crop": crop},
    )
    return trade


async def list_trades(repos: Repositories, broker: User) -> list[Trade]:
    return await repos.trades.list_for_broker(broker.id)


async def list_active_trades(repos: Repositories) -> list[Trade]:
    """Trades still open to supplier responses."""
    return await repos.trades.list_by_status(TradeStatus.ACTIVE)


async def broadcast_trade(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    settings: Settings,
    broker: User,
    trade_id: str,
    now: datetime | None = None,
) -> int:
    """Send a trade to every supplier, at most once per trade.

    Each supplier gets three messages: the alert, the accept instruction and
    the counter instruction.

    Returns:
        Number of suppliers messaged

    Raises:
        NotFoundError: Unknown trade
        AccessDeniedError: Trade belongs to another broker
        ValueError: Already broadcast, expired, or no suppliers
    """
    trade = await repos.trades.get(trade_id)
    if trade is None:
        raise NotFoundError("Trade not found")
    if trade.broker_id != broker.id:
        raise AccessDeniedError("Unauthorized to broadcast this trade")
    if await repos.logs.exists(EntityType.TRADE, trade.id, LogType.TRADE_BROADCAST):
        raise ValueError("Trade already broadcasted")
    if trade.valid_till < (now or utcnow()):
        raise ValueError("Trade validity has expired")

    suppliers = await repos.users.list_by_role(UserRole.SUPPLIER)
    if not suppliers:
        raise ValueError("No active suppliers found")

    delivered = 0
    for supplier in suppliers:
        if await notifier.send_trade(supplier.phone, trade, settings.broadcast_delay):
            delivered += 1

    await activity.record(
        repos,
        broker_id=broker.id,
        log_type=LogType.TRADE_BROADCAST,
        message=f"Trade for {trade.crop} broadcast to {len(suppliers)} suppliers",
        entity_type=EntityType.TRADE,
        entity_id=trade.id,
        actor=broker,
        details={"supplier_count": len(suppliers), "delivered": delivered},
    )
    logger.info(
        "Trade broadcast",
        extra={
            "trade_id": trade.id,
            "supplier_count": len(suppliers),
            "delivered": delivered,
        },
    )
    return len(suppliers)


async def broadcast_history(
    repos: Repositories, broker: User
) -> list[tuple[Log, Trade | None]]:
    """Broadcast log entries, newest first, each with its trade."""
    logs = await repos.logs.list_by_type(broker.id, LogType.TRADE_BROADCAST)
    trades = await repos.trades.get_many([log.entity_id for log in logs])
    return [(log, trades.get(log.entity_id)) for log in logs]


async def expire_trades(repos: Repositories, now: datetime | None = None) -> list[Trade]:
    """Expire open trades whose validity has passed.

    Each expired trade gets a ``trade_expired`` entry in its broker's inbox.
    """
    trades = await repos.trades.list_past_deadline(now or utcnow())
    if not trades:
        return []

    brokers = await repos.users.get_many(list({t.broker_id for t in trades}))
    for trade in trades:
        transition_trade(trade, TradeStatus.EXPIRED)
        broker = brokers.get(trade.broker_id)
        if broker is None:
            continue
        await activity.record(
            repos,
            broker_id=broker.id,
            log_type=LogType.TRADE_EXPIRED,
            message=f"Trade for {trade.crop} expired",
            entity_type=EntityType.TRADE,
            entity_id=trade.id,
            actor=broker,
            details={"valid_till": trade.valid_till.isoformat()},
            commit=False,
        )

    await repos.commit()
    logger.info("Trades expired", extra={"count": len(trades)})
    return trades


# ============================================================================
# Suppliers
# ============================================================================


async def add_supplier(
    repos: Repositories,
    firm_name: str,
    phone: str,
    address: str | None = None,
    **profile,
) -> User:
    """Register a supplier who interacts only over WhatsApp."""
    normalized = normalize_phone(phone)
    if not normalized or len(normalized) < 10:
        raise ValueError("A valid 10 digit phone number is required")

    supplier = User(
        id=new_id(),
        role=UserRole.SUPPLIER,
        firm_name=firm_name,
        phone=normalized,
        address=address,
        **profile,
    )
    repos.users.add(supplier)
    await repos.commit()
    logger.info("Supplier added", extra={"supplier_id": supplier.id})
    return supplier


async def list_suppliers(repos: Repositories) -> list[User]:
    return await repos.users.list_by_role(UserRole.SUPPLIER)


async def get_supplier(repos: Repositories, supplier_id: str) -> User:
    supplier = await repos.users.get_with_role(supplier_id, UserRole.SUPPLIER)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


# ============================================================================
# Notifications
# ============================================================================


async def unread_notifications(repos: Repositories, broker: User) -> list[Log]:
    return await repos.logs.unread_for_broker(broker.id)


async def notification_count(repos: Repositories, broker: User) -> int:
    return await repos.logs.count_unread(broker.id)


async def notification_history(
    repos: Repositories, broker: User, page: int = 1, limit: int = 20
) -> tuple[list[Log], int, int]:
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")
    return await repos.logs.history(broker.id, page, limit)


async def mark_notifications_read(
    repos: Repositories, broker: User, log_ids: list[str]
) -> None:
    """Mark the given entries read; ids outside the broker's inbox are ignored."""
    await repos.logs.mark_read(broker.id, log_ids)
    await repos.commit()


async def accepted_trade_logs(
    repos: Repositories, user: User
) -> list[tuple[Log, str]]:
    """Trade acceptances addressed to ``user``, each with a display message.

    The display message is the stored message with the accepted price
    appended.
    """
    logs = await repos.logs.list_by_type(user.id, LogType.TRADE_ACCEPT)
    return [
        (log, f"{log.message} Price is {(log.details or {}).get('price', '')}")
        for log in logs
    ]


# ============================================================================
# Commissions
# ============================================================================


@dataclass
class CommissionTotals:
    payment_status: PaymentStatus
    total_supplier_commission: Decimal
    total_buyer_commission: Decimal
    total_commission: Decimal


async def commission_summary(repos: Repositories, broker: User) -> list[CommissionTotals]:
    """Commission earned on settled orders, grouped by payment status."""
    rows = await repos.orders.commission_totals(broker.id, COMMISSION_STATUSES)
    return [
        CommissionTotals(
            payment_status=status,
            total_supplier_commission=money(supplier or 0),
            total_buyer_commission=money(buyer or 0),
            total_commission=money(total or 0),
        )
        for status, supplier, buyer, total in rows
    ]


async def commission_orders(repos: Repositories, broker: User) -> list[Order]:
    return await repos.orders.list_for_broker(broker.id, COMMISSION_STATUSES)
