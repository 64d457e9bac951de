"""
Trade model - a broker's posted offer to sell a crop lot.

Trades only move forward: active -> negotiating/confirmed/expired.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropbroker.database import Base
from cropbroker.utils import utcnow


class TradeStatus(enum.Enum):
    """Trade lifecycle status."""

    ACTIVE = "active"  # Open for supplier responses
    NEGOTIATING = "negotiating"  # A supplier has countered
    CONFIRMED = "confirmed"
    EXPIRED = "expired"  # valid_till passed


class Trade(Base):
    """A crop lot offered by a broker."""

    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    crop: Mapped[str] = mapped_column(String, nullable=False)
    grade: Mapped[str] = mapped_column(String, nullable=False)

    # Price per quintal
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Quintals on offer
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    valid_till: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[TradeStatus] = mapped_column(
        Enum(TradeStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TradeStatus.ACTIVE,
    )

    broker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    broker: Mapped["User"] = relationship(foreign_keys=[broker_id])
    orders: Mapped[list["Order"]] = relationship(back_populates="trade")

    __table_args__ = (
        CheckConstraint("price > 0", name="check_trade_price_positive"),
        CheckConstraint("quantity > 0", name="check_trade_quantity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"Trade(id={self.id!r}, {self.quantity} {self.crop} ({self.grade}) "
            f"@ {self.price}, status={self.status.value})"
        )


# Import at end to avoid circular imports
from cropbroker.models.order import Order
from cropbroker.models.user import User
