"""
Shared pytest fixtures for testing the crop brokerage backend.

Uses an in-memory SQLite database for fast, isolated tests. Outbound
WhatsApp messages are captured by a recording notifier instead of being sent.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cropbroker.config import Settings, get_settings
from cropbroker.database import Base, get_session
from cropbroker.main import app
from cropbroker.models import Trade, TradeStatus, User, UserRole
from cropbroker.repositories import Repositories
from cropbroker.services.accounts import create_access_token, hash_password
from cropbroker.services.whatsapp import WhatsAppNotifier, get_notifier
from cropbroker.utils import normalize_phone, utcnow


# Use in-memory SQLite for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BROKER_PHONE = "9876543210"
SUPPLIER_PHONE = "9988776655"
OTHER_SUPPLIER_PHONE = "9123456780"
FINANCER_PHONE = "9811122334"


class RecordingNotifier(WhatsAppNotifier):
    """Notifier that records messages instead of calling the WhatsApp API."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: list[tuple[str | None, str]] = []

    async def send_message(self, phone, body):
        self.sent.append((normalize_phone(phone), body))
        return phone is not None

    def messages_to(self, phone: str) -> list[str]:
        return [body for to, body in self.sent if to == normalize_phone(phone)]


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def test_settings(tmp_path):
    """Settings with no broadcast delay and a temporary invoice directory."""
    return Settings(
        jwt_secret="test-secret",
        whatsapp_verify_token="verify-me",
        broadcast_delay=0,
        invoice_dir=tmp_path / "invoices",
        public_base_url="http://api.test",
        frontend_url="http://app.test",
    )


@pytest.fixture
def notifier(test_settings):
    return RecordingNotifier(test_settings)


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine.

    Creates tables at the start, drops them at the end.
    Each test gets a fresh database.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine):
    """Provide a database session for a test.

    Rolls back the session after each test for isolation.
    """
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repos(test_session):
    """Repositories bound to the test session."""
    return Repositories.for_session(test_session)


@pytest_asyncio.fixture
async def test_client(test_engine, test_settings, notifier):
    """Provide a FastAPI test client with test database.

    Overrides the session, settings and notifier dependencies.
    """
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_session():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Helper fixtures for creating test data ---


async def _add_user(session, **fields) -> User:
    user = User(**fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def broker(test_session):
    """A broker who can log in."""
    return await _add_user(
        test_session,
        id="broker1",
        email="broker@example.com",
        password_hash=hash_password("broker123"),
        role=UserRole.BROKER,
        firm_name="Sharma Trading Co",
        phone=BROKER_PHONE,
        address="APMC Yard, Indore",
    )


@pytest_asyncio.fixture
async def other_broker(test_session):
    return await _add_user(
        test_session,
        id="broker2",
        email="other@example.com",
        password_hash=hash_password("other123"),
        role=UserRole.BROKER,
        firm_name="Gupta Brokers",
        phone="9000000002",
    )


@pytest_asyncio.fixture
async def supplier(test_session):
    """A WhatsApp-only supplier."""
    return await _add_user(
        test_session,
        id="supplier1",
        role=UserRole.SUPPLIER,
        firm_name="Patel Agro",
        phone=SUPPLIER_PHONE,
        address="Village Sanwer",
    )


@pytest_asyncio.fixture
async def other_supplier(test_session):
    return await _add_user(
        test_session,
        id="supplier2",
        role=UserRole.SUPPLIER,
        firm_name="Verma Farms",
        phone=OTHER_SUPPLIER_PHONE,
    )


@pytest_asyncio.fixture
async def financer(test_session):
    return await _add_user(
        test_session,
        id="financer1",
        email="finance@example.com",
        password_hash=hash_password("finance123"),
        role=UserRole.FINANCER,
        firm_name="Kisan Credit Partners",
        phone=FINANCER_PHONE,
    )


@pytest_asyncio.fixture
async def trade(test_session, broker):
    """Wheat, grade A, 10 qtl at 2000 per qtl, valid for a day."""
    trade = Trade(
        id="trade1",
        crop="Wheat",
        grade="A",
        price=Decimal("2000.00"),
        quantity=Decimal("10.00"),
        valid_till=utcnow() + timedelta(days=1),
        status=TradeStatus.ACTIVE,
        broker_id=broker.id,
    )
    test_session.add(trade)
    await test_session.commit()
    await test_session.refresh(trade)
    return trade


@pytest.fixture
def auth_headers(test_settings):
    """Build bearer headers for a user."""

    def make(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(test_settings, user)}"}

    return make
