import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gorizont.common.enums import UserRole
from gorizont.common.security import create_access_token, get_password_hash
from gorizont.db.base import Base
from gorizont.db.models import *  # noqa: F401,F403 - ensure all models loaded

# One private in-memory SQLite database per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_PASSWORD_HASH = get_password_hash("testpass123")


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from gorizont.api.deps import get_db
    from gorizont.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    from gorizont.db.models.user import User

    async def _make(role: UserRole, full_name: str, is_active: bool = True) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{role.value}_{uuid.uuid4().hex[:8]}@test.com",
            hashed_password=_PASSWORD_HASH,
            full_name=full_name,
            role=role.value,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def buyer_user(make_user):
    return await make_user(UserRole.BUYER, "Test Buyer")


@pytest.fixture
async def other_buyer(make_user):
    return await make_user(UserRole.BUYER, "Other Buyer")


@pytest.fixture
async def vendor_user(make_user):
    return await make_user(UserRole.VENDOR, "Test Vendor")


@pytest.fixture
async def other_vendor(make_user):
    return await make_user(UserRole.VENDOR, "Other Vendor")


@pytest.fixture
async def admin_user(make_user):
    return await make_user(UserRole.ADMIN, "Test Admin")


def _headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def buyer_headers(buyer_user):
    return _headers(buyer_user)


@pytest.fixture
def other_buyer_headers(other_buyer):
    return _headers(other_buyer)


@pytest.fixture
def vendor_headers(vendor_user):
    return _headers(vendor_user)


@pytest.fixture
def other_vendor_headers(other_vendor):
    return _headers(other_vendor)


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
async def product(db_session, vendor_user):
    from gorizont.db.models.product import Product

    item = Product(
        vendor_id=vendor_user.id,
        title="Chestnut honey, 1 kg",
        price=Decimal("500.00"),
        in_stock=True,
        average_rating=0.0,
        reviews_count=0,
    )
    db_session.add(item)
    await db_session.flush()
    await db_session.refresh(item)
    return item


@pytest.fixture
async def order(client, buyer_headers, product):
    response = await client.post(
        "/api/v1/orders",
        headers=buyer_headers,
        json={
            "items": [{"product_id": str(product.id), "quantity": 2}],
            "payment_method": "cash",
            "city": "Sukhum",
            "address": "Lakoba St 12",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def advance_order(client, vendor_headers):
    """Drive an order through the vendor workflow, one status at a time."""

    async def _advance(order_id: str, *statuses: str) -> dict:
        data = {}
        for status in statuses:
            response = await client.put(
                f"/api/v1/orders/{order_id}/status",
                headers=vendor_headers,
                json={"status": status},
            )
            assert response.status_code == 200, response.text
            data = response.json()
        return data

    return _advance


@pytest.fixture
async def delivered_order(order, advance_order):
    return await advance_order(order["id"], "confirmed", "shipped", "delivered")
