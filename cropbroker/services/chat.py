"""Dispatch inbound WhatsApp messages to the negotiation engine.

Every message gets exactly one reply sent back to the sender. Business
rejections become that reply; nothing here surfaces as an HTTP error.
"""

import logging

from cropbroker.config import Settings
from cropbroker.models import Order, User, UserRole
from cropbroker.repositories import Repositories
from cropbroker.services import negotiation
from cropbroker.services.commands import (
    AcceptTrade,
    BrokerAccept,
    CounterOffer,
    HELP_TEXT,
    UsageError,
    parse_command,
)
from cropbroker.services.errors import NegotiationError
from cropbroker.services.whatsapp import WhatsAppNotifier

logger = logging.getLogger(__name__)

NOT_REGISTERED = "Your number is not registered. Please contact your broker."
SUPPLIERS_ONLY = "Only registered suppliers can respond to trades"
GENERIC_ERROR = "Sorry, there was an error processing your request."
BROKER_CONFIRMED = "Trade confirmed successfully!"


def format_accept_reply(order: Order) -> str:
    return (
        "Trade accepted successfully!\n"
        "Waiting for broker confirmation.\n"
        f"Price: ₹{order.price_per_unit}/qtl\n"
        f"Quantity: {order.quantity} qtl\n"
        f"Total amount: ₹{order.total_amount}\n"
        f"Commission rate: {order.supplier_commission_rate}%\n"
        f"Commission amount: ₹{order.supplier_commission_amount}"
    )


def format_counter_reply(order: Order, listed_price) -> str:
    return (
        "Counter offer sent successfully!\n"
        f"Original price: ₹{listed_price}/qtl\n"
        f"Your offer: ₹{order.counter_offer}/qtl\n"
        f"Quantity: {order.quantity} qtl\n"
        f"Total amount: ₹{order.total_amount}"
    )


def _require_supplier(user: User) -> None:
    if user.role != UserRole.SUPPLIER:
        raise NegotiationError(SUPPLIERS_ONLY)


async def _dispatch(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    settings: Settings,
    sender: str,
    text: str,
) -> str:
    command = parse_command(text)

    if isinstance(command, UsageError):
        return command.reply
    if not isinstance(command, (AcceptTrade, CounterOffer, BrokerAccept)):
        return HELP_TEXT

    user = await repos.users.get_by_phone(sender)
    if user is None:
        return NOT_REGISTERED

    if isinstance(command, AcceptTrade):
        _require_supplier(user)
        order = await negotiation.accept_trade(
            repos, notifier, settings, user, command.trade_id
        )
        return format_accept_reply(order)

    if isinstance(command, CounterOffer):
        _require_supplier(user)
        trade = await repos.trades.get(command.trade_id)
        listed_price = trade.price if trade else None
        order = await negotiation.counter_offer(
            repos, notifier, user, command.trade_id, command.price
        )
        return format_counter_reply(order, listed_price)

    await negotiation.broker_accept(repos, notifier, user, command.order_id)
    return BROKER_CONFIRMED


async def handle_incoming_message(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    settings: Settings,
    sender: str,
    text: str,
) -> str:
    """Process one text message from ``sender`` and reply to it.

    Args:
        sender: Sender's phone number as reported by WhatsApp
        text: Message body

    Returns:
        The reply that was sent
    """
    logger.info("Incoming message", extra={"sender": sender, "text": text})
    try:
        reply = await _dispatch(repos, notifier, settings, sender, text)
    except NegotiationError as e:
        await repos.rollback()
        reply = str(e)
    except Exception:
        logger.exception("Error processing message", extra={"sender": sender})
        await repos.rollback()
        reply = GENERIC_ERROR

    await notifier.send_message(sender, reply)
    return reply
