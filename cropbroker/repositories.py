"""Per-entity data access.

Each repository wraps the request's ``AsyncSession``. Handlers receive a
``Repositories`` bundle from the ``get_repositories`` dependency instead of
reaching for a global database handle.
"""

import math
from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cropbroker.database import get_session
from cropbroker.models import (
    Buyer,
    EntityType,
    Invoice,
    Log,
    LogType,
    Order,
    OrderStatus,
    PurchaseOrder,
    Trade,
    TradeStatus,
    User,
    UserRole,
)
from cropbroker.utils import normalize_phone


class _Repository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def add(self, instance) -> None:
        self.session.add(instance)


class UserRepository(_Repository):
    async def get(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> User | None:
        """Find the user registered under the last 10 digits of ``phone``."""
        normalized = normalize_phone(phone)
        if not normalized:
            return None
        result = await self.session.execute(
            select(User).where(User.phone == normalized).order_by(User.created_at)
        )
        return result.scalars().first()

    async def get_with_role(self, user_id: str, role: UserRole) -> User | None:
        result = await self.session.execute(
            select(User).where(and_(User.id == user_id, User.role == role))
        )
        return result.scalar_one_or_none()

    async def list_by_role(self, role: UserRole) -> list[User]:
        result = await self.session.execute(
            select(User).where(User.role == role).order_by(User.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_many(self, user_ids: list[str]) -> dict[str, User]:
        if not user_ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(user_ids)))
        return {u.id: u for u in result.scalars()}


class TradeRepository(_Repository):
    async def get(self, trade_id: str) -> Trade | None:
        return await self.session.get(Trade, trade_id)

    async def list_for_broker(self, broker_id: str) -> list[Trade]:
        result = await self.session.execute(
            select(Trade)
            .where(Trade.broker_id == broker_id)
            .order_by(Trade.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: TradeStatus) -> list[Trade]:
        result = await self.session.execute(
            select(Trade).where(Trade.status == status).order_by(Trade.valid_till)
        )
        return list(result.scalars().all())

    async def list_past_deadline(self, now) -> list[Trade]:
        """Trades still open (active or negotiating) whose validity has passed."""
        result = await self.session.execute(
            select(Trade).where(
                and_(
                    Trade.status.in_([TradeStatus.ACTIVE, TradeStatus.NEGOTIATING]),
                    Trade.valid_till < now,
                )
            )
        )
        return list(result.scalars().all())

    async def get_many(self, trade_ids: list[str]) -> dict[str, Trade]:
        if not trade_ids:
            return {}
        result = await self.session.execute(select(Trade).where(Trade.id.in_(trade_ids)))
        return {t.id: t for t in result.scalars()}


class OrderRepository(_Repository):
    async def get(self, order_id: str) -> Order | None:
        return await self.session.get(Order, order_id)

    async def latest_for_trade(self, trade_id: str) -> Order | None:
        result = await self.session.execute(
            select(Order)
            .where(Order.trade_id == trade_id)
            .order_by(Order.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_broker(
        self, broker_id: str, statuses: list[OrderStatus]
    ) -> list[Order]:
        """Orders of a broker in the given statuses, with supplier and trade loaded."""
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.supplier), selectinload(Order.trade))
            .where(and_(Order.broker_id == broker_id, Order.status.in_(statuses)))
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def commission_totals(self, broker_id: str, statuses: list[OrderStatus]):
        """Sum commissions per payment status.

        Returns rows of (payment_status, supplier_total, buyer_total, total).
        """
        result = await self.session.execute(
            select(
                Order.payment_status,
                func.sum(Order.supplier_commission_amount),
                func.sum(Order.buyer_commission_amount),
                func.sum(Order.total_commission),
            )
            .where(and_(Order.broker_id == broker_id, Order.status.in_(statuses)))
            .group_by(Order.payment_status)
        )
        return list(result.all())


class BuyerRepository(_Repository):
    async def get(self, buyer_id: str) -> Buyer | None:
        return await self.session.get(Buyer, buyer_id)

    async def list_for_financer(self, financer_id: str) -> list[Buyer]:
        result = await self.session.execute(
            select(Buyer)
            .where(Buyer.financer_id == financer_id)
            .order_by(Buyer.created_at)
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[Buyer]:
        result = await self.session.execute(
            select(Buyer).options(selectinload(Buyer.financer)).order_by(Buyer.created_at)
        )
        return list(result.scalars().all())


class PurchaseOrderRepository(_Repository):
    async def list_for_financer(self, financer_id: str) -> list[PurchaseOrder]:
        """Purchase orders placed against any buyer the financer backs."""
        result = await self.session.execute(
            select(PurchaseOrder)
            .join(Buyer, PurchaseOrder.buyer_id == Buyer.id)
            .options(selectinload(PurchaseOrder.buyer), selectinload(PurchaseOrder.trade))
            .where(Buyer.financer_id == financer_id)
            .order_by(PurchaseOrder.created_at.desc())
        )
        return list(result.scalars().all())


class InvoiceRepository(_Repository):
    async def get(self, invoice_id: str) -> Invoice | None:
        return await self.session.get(Invoice, invoice_id)

    async def get_by_number(self, invoice_number: str) -> Invoice | None:
        result = await self.session.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one_or_none()

    async def list_for_broker(self, broker_id: str) -> list[Invoice]:
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.broker_id == broker_id)
            .order_by(Invoice.created_at.desc())
        )
        return list(result.scalars().all())


class LogRepository(_Repository):
    async def get(self, log_id: str) -> Log | None:
        return await self.session.get(Log, log_id)

    async def exists(self, entity_type: EntityType, entity_id: str, log_type: LogType) -> bool:
        result = await self.session.execute(
            select(Log.id)
            .where(
                and_(
                    Log.entity_type == entity_type,
                    Log.entity_id == entity_id,
                    Log.type == log_type,
                )
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def unread_for_broker(self, broker_id: str) -> list[Log]:
        result = await self.session.execute(
            select(Log)
            .options(selectinload(Log.actor))
            .where(and_(Log.broker_id == broker_id, Log.read.is_(False)))
            .order_by(Log.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_unread(self, broker_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Log.id)).where(
                and_(Log.broker_id == broker_id, Log.read.is_(False))
            )
        )
        return result.scalar_one()

    async def history(self, broker_id: str, page: int, limit: int) -> tuple[list[Log], int, int]:
        """One page of a broker's log history.

        Returns:
            Tuple of (logs on the page, total count, number of pages)
        """
        total = (
            await self.session.execute(
                select(func.count(Log.id)).where(Log.broker_id == broker_id)
            )
        ).scalar_one()
        result = await self.session.execute(
            select(Log)
            .options(selectinload(Log.actor))
            .where(Log.broker_id == broker_id)
            .order_by(Log.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total, math.ceil(total / limit)

    async def list_by_type(self, broker_id: str, log_type: LogType) -> list[Log]:
        result = await self.session.execute(
            select(Log)
            .where(and_(Log.broker_id == broker_id, Log.type == log_type))
            .order_by(Log.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_read(self, broker_id: str, log_ids: list[str]) -> None:
        if not log_ids:
            return
        await self.session.execute(
            update(Log)
            .where(and_(Log.id.in_(log_ids), Log.broker_id == broker_id))
            .values(read=True)
        )


@dataclass
class Repositories:
    """All repositories bound to one session."""

    session: AsyncSession
    users: UserRepository
    trades: TradeRepository
    orders: OrderRepository
    buyers: BuyerRepository
    purchase_orders: PurchaseOrderRepository
    invoices: InvoiceRepository
    logs: LogRepository

    @classmethod
    def for_session(cls, session: AsyncSession) -> "Repositories":
        return cls(
            session=session,
            users=UserRepository(session),
            trades=TradeRepository(session),
            orders=OrderRepository(session),
            buyers=BuyerRepository(session),
            purchase_orders=PurchaseOrderRepository(session),
            invoices=InvoiceRepository(session),
            logs=LogRepository(session),
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


async def get_repositories(session: AsyncSession = Depends(get_session)) -> Repositories:
    """Dependency that provides the repositories for the current request."""
    return Repositories.for_session(session)
