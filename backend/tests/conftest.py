"""
Pytest fixtures for test database, client, payment gateway and callers.

Each test gets fresh tables. The default store is a SQLite file (several
sessions must see the same data for the concurrency tests); point
TEST_DATABASE_URL at a Postgres database to run against the real thing.
"""

import hashlib
import hmac
import json
import os
import time
import uuid
from types import SimpleNamespace
from typing import AsyncGenerator

# Settings are read once per process; configure before the app is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_katagaki")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_katagaki")
os.environ.setdefault("ADMIN_USER_IDS", '["bootstrap_admin"]')
os.environ.setdefault("PUBLIC_BASE_URL", "https://katagaki.test")

import pytest
import pytest_asyncio
import stripe
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from katagaki.main import app
from katagaki.core.config import get_settings
from katagaki.core.security import Caller
from katagaki.db.base import Base
from katagaki.db.session import get_db
from katagaki.infrastructure.stripe_gateway import PaymentGateway, get_payment_gateway
from katagaki.models import Category, Title, User, UserRole
from katagaki.schemas.title import TitleCreate
from katagaki.services import catalog_service

settings = get_settings()

USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"
ADMIN_ID = "admin_carol"


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'katagaki_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, hand out a session factory, then drop tables."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> PaymentGateway:
    return PaymentGateway.from_settings(settings)


@pytest.fixture
def stripe_calls(monkeypatch) -> list:
    """Replace the Checkout Session API call; returns the captured params."""
    calls = []

    def fake_create(**params):
        calls.append(params)
        session_id = f"cs_test_{uuid.uuid4().hex[:12]}"
        return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, gateway) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with one test-database session per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def auth_headers() -> dict:
    return bearer(USER_ID)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    user = User(user_id=ADMIN_ID, display_name="Carol", role=UserRole.ADMIN.value)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def admin(admin_user: User) -> Caller:
    return Caller(user_id=admin_user.user_id, role=UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user.user_id)


@pytest_asyncio.fixture
async def category(db_session: AsyncSession) -> Category:
    category = Category(name_ja="称号", sort_order=1)
    db_session.add(category)
    await db_session.commit()
    return category


async def make_title(db: AsyncSession, admin: Caller, **overrides) -> Title:
    data = {
        "name": "伝説の勇者",
        "description": "A title for those who finished every quest",
        "base_price": 1200,
        "price_tier": "Standard",
        "status": "available",
        "purchasable_limit": 3,
    }
    data.update(overrides)
    return await catalog_service.create_title(db, TitleCreate(**data), admin)


@pytest_asyncio.fixture
async def title(db_session: AsyncSession, admin: Caller) -> Title:
    """Available title with three slots."""
    return await make_title(db_session, admin)


@pytest_asyncio.fixture
async def single_slot_title(db_session: AsyncSession, admin: Caller) -> Title:
    return await make_title(db_session, admin, name="唯一の王", base_price=5000, purchasable_limit=1)


@pytest_asyncio.fixture
async def draft_title(db_session: AsyncSession, admin: Caller) -> Title:
    return await make_title(db_session, admin, name="準備中", status="draft")


def completion_payload(title_id, user_id, session_id=None, metadata=None) -> str:
    """A checkout.session.completed event body as Stripe sends it."""
    if metadata is None:
        metadata = {"titleId": title_id, "userId": user_id}
    return json.dumps({
        "id": f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id or f"cs_test_{uuid.uuid4().hex[:16]}",
                "object": "checkout.session",
                "payment_status": "paid",
                "metadata": metadata,
            }
        },
    })


def sign(payload: str, secret: str = None, timestamp: int = None) -> str:
    """Stripe-Signature header value for `payload`."""
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def post_webhook(client: AsyncClient):
    async def _post(payload: str, signature: str = None):
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature if signature is not None else sign(payload)
        return await client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)

    return _post
