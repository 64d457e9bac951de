"""Parser for inbound WhatsApp text commands.

This is a fixed grammar agreed with the chat channel, not a tokenizer. The
message is stripped, matched case-insensitively by keyword prefix and then
split on whitespace. Arguments are read from fixed token positions:

    accept trade <trade_id>        trade_id = tokens[2]
    counter <trade_id> <price>     trade_id = tokens[1], price = tokens[2]
    broker accept <order_id>       order_id = tokens[2]

Extra trailing tokens are ignored. Because matching is by prefix, a message
such as "accepted" is read as an ``accept`` command with a missing id.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from cropbroker.utils import money

ACCEPT_USAGE = "Please provide a trade ID. Format: accept trade <trade_id>"
COUNTER_USAGE = "Please provide trade ID and price. Format: counter <trade_id> <price>"
INVALID_PRICE = "Please provide a valid price"
BROKER_ACCEPT_USAGE = "Please provide an order ID. Format: broker accept <order_id>"

HELP_TEXT = (
    "Available commands:\n"
    "1. accept trade <trade_id>\n"
    "2. counter <trade_id> <price>\n"
    "3. broker accept <order_id>"
)


@dataclass(frozen=True)
class AcceptTrade:
    trade_id: str


@dataclass(frozen=True)
class CounterOffer:
    trade_id: str
    price: Decimal


@dataclass(frozen=True)
class BrokerAccept:
    order_id: str


@dataclass(frozen=True)
class UsageError:
    """A known keyword with a malformed argument list."""

    reply: str


@dataclass(frozen=True)
class Unrecognized:
    pass


Command = AcceptTrade | CounterOffer | BrokerAccept | UsageError | Unrecognized


def _token(tokens: list[str], index: int) -> str | None:
    return tokens[index] if len(tokens) > index else None


def _parse_price(raw: str) -> Decimal | None:
    try:
        price = Decimal(raw)
    except InvalidOperation:
        return None
    if not price.is_finite():
        return None
    # Stored to the paisa; compare what will be stored
    price = money(price)
    if price <= 0:
        return None
    return price


def parse_command(text: str) -> Command:
    """Classify a raw message into a command."""
    stripped = (text or "").strip()
    lowered = stripped.lower()
    tokens = stripped.split()

    # "broker accept" is checked before "accept" only for readability;
    # the two prefixes cannot both match.
    if lowered.startswith("broker accept"):
        order_id = _token(tokens, 2)
        if not order_id:
            return UsageError(BROKER_ACCEPT_USAGE)
        return BrokerAccept(order_id=order_id)

    if lowered.startswith("accept"):
        trade_id = _token(tokens, 2)
        if not trade_id:
            return UsageError(ACCEPT_USAGE)
        return AcceptTrade(trade_id=trade_id)

    if lowered.startswith("counter"):
        trade_id = _token(tokens, 1)
        raw_price = _token(tokens, 2)
        if not trade_id or raw_price is None:
            return UsageError(COUNTER_USAGE)
        price = _parse_price(raw_price)
        if price is None:
            return UsageError(INVALID_PRICE)
        return CounterOffer(trade_id=trade_id, price=price)

    return Unrecognized()
