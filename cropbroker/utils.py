"""Small helpers shared by models, services and schemas."""

import re
import uuid
from datetime import datetime, UTC
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

_NON_DIGITS = re.compile(r"\D")


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the form stored in the database)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_phone(phone: str | None) -> str | None:
    """Reduce a phone number to its last 10 digits.

    WhatsApp reports senders as e.g. "919876543210" while brokers type
    "+91 98765 43210"; both normalise to "9876543210".
    """
    if phone is None:
        return None
    digits = _NON_DIGITS.sub("", phone)
    return digits[-10:] or None


def new_id() -> str:
    """Generate a unique entity ID."""
    return str(uuid.uuid4())
