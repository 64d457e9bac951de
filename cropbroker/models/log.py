"""
Log model - append-only audit and notification record.

Drives the broker's notification inbox. Entries are never modified except
for the read flag.
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropbroker.database import Base
from cropbroker.utils import utcnow


class LogType(enum.Enum):
    """The event a log entry records."""

    TRADE_CREATED = "trade_created"
    TRADE_BROADCAST = "trade_broadcast"
    TRADE_ACCEPT = "trade_accept"
    COUNTER_OFFER = "counter_offer"
    ORDER_CONFIRMED = "order_confirmed"
    PO_CREATED = "po_created"
    INVOICE_GENERATED = "invoice_generated"
    TRADE_EXPIRED = "trade_expired"


class EntityType(enum.Enum):
    TRADE = "trade"
    ORDER = "order"
    PURCHASE_ORDER = "purchase_order"
    INVOICE = "invoice"


class ActorType(enum.Enum):
    SUPPLIER = "supplier"
    BROKER = "broker"
    FINANCER = "financer"


class Log(Base):
    """One state-changing event, addressed to a broker."""

    __tablename__ = "logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Whose inbox this entry lands in
    broker_id: Mapped[str] = mapped_column(String(36), nullable=False)

    type: Mapped[LogType] = mapped_column(
        Enum(LogType, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    message: Mapped[str] = mapped_column(String, nullable=False)

    entity_type: Mapped[EntityType] = mapped_column(
        Enum(EntityType, values_callable=lambda e: [m.value for m in e]), nullable=False
    )
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    actor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    actor_type: Mapped[ActorType] = mapped_column(
        Enum(ActorType, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    actor: Mapped["User"] = relationship(foreign_keys=[actor_id])

    __table_args__ = (
        Index("ix_logs_broker_id", "broker_id"),
        Index("ix_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"Log(id={self.id!r}, type={self.type.value}, entity={self.entity_id!r})"


# Import at end to avoid circular imports
from cropbroker.models.user import User
