"""
User model - brokers, suppliers, farmers and financers.

Suppliers added by a broker have no email or password; they only interact
through WhatsApp and are identified by phone number.
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from cropbroker.database import Base
from cropbroker.utils import utcnow


class UserRole(enum.Enum):
    """What a user is allowed to do."""

    BROKER = "broker"
    SUPPLIER = "supplier"
    FARMER = "farmer"
    FINANCER = "financer"


class User(Base):
    """A registered participant."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    email: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)

    # bcrypt hash; NULL for users who cannot log in
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    firm_name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Last 10 digits only, matched against the sender of inbound WhatsApp messages
    phone: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)

    address: Mapped[str | None] = mapped_column(String, nullable=True)
    pan_number: Mapped[str | None] = mapped_column(String, nullable=True)
    aadhar_number: Mapped[str | None] = mapped_column(String, nullable=True)
    upi_id: Mapped[str | None] = mapped_column(String, nullable=True)
    bank_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, role={self.role.value}, firm_name={self.firm_name!r})"
