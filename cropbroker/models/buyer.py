"""
Buyer model - a purchasing party whose credit is extended by a financer.

Invariant: 0 <= available_credit <= credit_limit.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropbroker.database import Base
from cropbroker.utils import utcnow


class BuyerStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Buyer(Base):
    """A buyer financed by a financer user."""

    __tablename__ = "buyers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    financer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String, nullable=False)

    credit_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    # Credit not yet committed to purchase orders
    available_credit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[BuyerStatus] = mapped_column(
        Enum(BuyerStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BuyerStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    financer: Mapped["User"] = relationship(foreign_keys=[financer_id])

    __table_args__ = (
        CheckConstraint("credit_limit >= 0", name="check_credit_limit_non_negative"),
        CheckConstraint("available_credit >= 0", name="check_available_credit_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"Buyer(id={self.id!r}, name={self.name!r}, "
            f"available={self.available_credit}/{self.credit_limit})"
        )


# Import at end to avoid circular imports
from cropbroker.models.user import User
