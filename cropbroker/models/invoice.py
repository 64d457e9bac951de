"""
Invoice model - generated per order by the broker.

Line items are stored as a JSON list of {crop, price, quantity, total_amount}.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from cropbroker.database import Base
from cropbroker.utils import utcnow


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Invoice(Base):
    """An invoice for one order."""

    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Supplier's own invoice number, set once after the request is sent
    invoice_number: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)

    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id"), nullable=False
    )
    supplier_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    broker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    # Free-text party blocks as printed on the invoice
    bill_from: Mapped[str] = mapped_column(String, nullable=False)
    ship_from: Mapped[str] = mapped_column(String, nullable=False)
    ship_to: Mapped[str] = mapped_column(String, nullable=False)
    bill_to: Mapped[str] = mapped_column(String, nullable=False)

    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    shipping_charges: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    final_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    po_number: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )

    # Server path of the rendered PDF, e.g. /broker/invoices/invoice_1700000000000.pdf
    file_path: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"Invoice(id={self.id!r}, order={self.order_id!r}, "
            f"final={self.final_amount}, status={self.status.value})"
        )
