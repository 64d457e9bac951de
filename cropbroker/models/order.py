"""
Order model - the transactional record created once a supplier responds.

Commission amounts are computed once when the order is created and are
never recomputed afterwards.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropbroker.database import Base
from cropbroker.utils import utcnow


class OrderStatus(enum.Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    SUPPLIER_ACCEPTED = "supplier_accepted"  # Supplier took the listed price
    BROKER_ACCEPTED = "broker_accepted"
    NEGOTIATING = "negotiating"  # Supplier countered with a lower price
    CONFIRMED = "confirmed"
    FINANCED = "financed"
    DELIVERED = "delivered"
    COMPLETED = "completed"


class PaymentStatus(enum.Enum):
    """Commission collection status, independent of the order status."""

    PENDING = "pending"
    SUPPLIER_COMMISSION_PAID = "supplier_commission_paid"
    BUYER_COMMISSION_PAID = "buyer_commission_paid"
    ALL_PAID = "all_paid"


class Order(Base):
    """A supplier's response to a trade."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    trade_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trades.id"), nullable=False, index=True
    )
    supplier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    broker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Agreed price, or the countered price for negotiating orders
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    # Rates are percentages (2.5 means 2.5%)
    supplier_commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    supplier_commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    buyer_commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    buyer_commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_commission: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    counter_offer: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    trade: Mapped["Trade"] = relationship(back_populates="orders")
    supplier: Mapped["User"] = relationship(foreign_keys=[supplier_id])
    broker: Mapped["User"] = relationship(foreign_keys=[broker_id])

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_order_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"Order(id={self.id!r}, trade={self.trade_id!r}, {self.quantity} "
            f"@ {self.price_per_unit}, status={self.status.value})"
        )


# Import at end to avoid circular imports
from cropbroker.models.trade import Trade
from cropbroker.models.user import User
