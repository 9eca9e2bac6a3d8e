"""
Shared fixtures.

Every test gets a fresh SQLite database (aiosqlite). HTTP tests drive the
FastAPI app in-process through httpx's ASGITransport with get_db pointed
at the test database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_courier.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from courier import models  # noqa: F401
from courier.core.security import create_access_token, get_password_hash
from courier.database import Base, get_db, json_dumps
from courier.main import app
from courier.models.role import Role, DataScope, SUPER_ADMIN_ROLE, empty_permissions
from courier.models.user import User

TEST_DATABASE_URL = os.environ["DATABASE_URL"]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool, json_serializer=json_dumps)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
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
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(db, email: str, role: Role, password: str = "Secret@123", **fields) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        name=fields.pop("name", email.split("@")[0].title()),
        role_id=role.id,
        is_active=True,
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def admin(db) -> User:
    role = Role(
        name=SUPER_ADMIN_ROLE,
        permissions=empty_permissions(),
        data_scope=DataScope.ALL.value,
        is_system_role=True,
    )
    db.add(role)
    await db.commit()
    return await create_user(db, "admin@courierexpress.com", role, password="Admin@123", name="Admin")


@pytest.fixture
def admin_headers(admin) -> dict:
    return auth_headers(admin)


@pytest_asyncio.fixture
async def clerk(db) -> User:
    """Booking clerk: may view and add bookings, nothing else."""
    permissions = empty_permissions()
    permissions["booking"]["can_view"] = True
    permissions["booking"]["can_add"] = True
    role = Role(name="Booking Clerk", permissions=permissions, data_scope=DataScope.OWN.value)
    db.add(role)
    await db.commit()
    return await create_user(db, "clerk@courierexpress.com", role, branch="Pune")


@pytest.fixture
def clerk_headers(clerk) -> dict:
    return auth_headers(clerk)


SHIPPER_PAYLOAD = {
    "name": "Anita Desai",
    "company": "Desai Textiles",
    "email": "accounts@desaitextiles.com",
    "mobile": "9820012345",
    "city": "Mumbai",
    "state": "Maharashtra",
    "postal_code": "400001",
    "payment_type": "Credit",
}

CONSIGNEE = {
    "name": "Ravi Kumar",
    "mobile": "9876543210",
    "street": "12 MG Road",
    "city": "Pune",
    "state": "Maharashtra",
    "postal_code": "411001",
}


async def create_shipper(client, headers, **overrides) -> dict:
    payload = {**SHIPPER_PAYLOAD, **overrides}
    response = await client.post("/api/v1/shippers", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def create_booking(client, headers, shipper_id, **overrides) -> dict:
    payload = {
        "shipper_id": shipper_id,
        "consignee": CONSIGNEE,
        "service_type": "Express",
        "weight": 2.5,
        "declared_value": 5000,
        "payment_mode": "Prepaid",
        **overrides,
    }
    response = await client.post("/api/v1/bookings", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def shipper(client, admin_headers) -> dict:
    return await create_shipper(client, admin_headers)
