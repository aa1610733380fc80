"""Shared pytest fixtures: in-memory database, actors and an ASGI client."""

import os
import uuid
from datetime import timedelta
from decimal import Decimal

# Settings are read at import time; pin a throwaway database before app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models.enums import UserRole
from app.schemas.bill import BillCreate
from app.services.bill_service import BillService
from app.services.user_service import UserService
from app.utils.time import get_utc_now

PASSWORD = "TestPassword123!"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def unique_suffix() -> str:
    """Unique suffix for test data to avoid collisions."""
    return str(uuid.uuid4())[:8]


async def make_user(db, role: UserRole, name: str, funds: Decimal = Decimal("0")):
    return await UserService.create_user(
        db,
        email=f"{name.lower()}_{uuid.uuid4().hex[:8]}@test.example.com",
        password=PASSWORD,
        name=name,
        role=role,
        company_name=f"{name} Ltd" if role != UserRole.CUSTOMER else None,
        available_funds=funds,
    )


@pytest.fixture
async def organization(db):
    return await make_user(db, UserRole.ORGANIZATION, "Acme")


@pytest.fixture
async def customer(db):
    return await make_user(db, UserRole.CUSTOMER, "Carol")


@pytest.fixture
async def financer(db):
    return await make_user(db, UserRole.FINANCER, "Fiona", Decimal("5000"))


@pytest.fixture
async def second_financer(db):
    return await make_user(db, UserRole.FINANCER, "Felix", Decimal("10000"))


@pytest.fixture
def make_bill(db, organization, customer):
    """Create (and by default send) a bill from the organization to the customer."""

    async def _make(amount="10000", days=30, send=True):
        data = BillCreate(
            title="Consulting services",
            description="Q3 consulting engagement",
            amount=Decimal(amount),
            due_date=get_utc_now() + timedelta(days=days),
            customer_id=customer.id,
        )
        bill = await BillService.create_bill(db, organization, data)
        if send:
            bill = await BillService.send_bill(db, organization, bill.id)
        return bill

    return _make


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(session_factory):
    """ASGI client; every request gets its own session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url="http://test", timeout=30.0)
    yield client
    await client.aclose()
    app.dependency_overrides.clear()


async def register(client: AsyncClient, api_base: str, role: str, name: str, suffix: str) -> dict:
    """Register through the API, log in, and return the account id and auth headers."""
    email = f"{name.lower()}_{suffix}@test.example.com"
    resp = await client.post(
        f"{api_base}/auth/register",
        json={"email": email, "password": PASSWORD, "name": name, "role": role},
    )
    assert resp.status_code == 201, resp.text
    user_id = resp.json()["data"]["id"]

    resp = await client.post(f"{api_base}/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    token = resp.json()["data"]["access_token"]
    return {"id": user_id, "email": email, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
def register_actor(async_client: AsyncClient, api_base: str, unique_suffix: str):
    async def _register(role: str, name: str) -> dict:
        return await register(async_client, api_base, role, name, unique_suffix)
    return _register
