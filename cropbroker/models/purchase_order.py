"""
PurchaseOrder model - a buyer-side commitment against a trade.

Creating one consumes the buyer's available credit.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropbroker.database import Base
from cropbroker.utils import utcnow


class PurchaseOrderStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PurchaseOrder(Base):
    """A purchase order placed by a broker on behalf of a buyer."""

    __tablename__ = "purchase_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    po_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    trade_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trades.id"), nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("buyers.id"), nullable=False, index=True
    )
    # Supplier of the trade's latest order, when one exists
    supplier_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    broker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[PurchaseOrderStatus] = mapped_column(
        Enum(PurchaseOrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    trade: Mapped["Trade"] = relationship()
    buyer: Mapped["Buyer"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_po_quantity_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"PurchaseOrder(po_number={self.po_number!r}, buyer={self.buyer_id!r}, "
            f"total={self.total_amount})"
        )


# Import at end to avoid circular imports
from cropbroker.models.buyer import Buyer
from cropbroker.models.trade import Trade
