import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["LOGIN_RATE_LIMIT"] = "3/minute"

from decimal import Decimal
from typing import Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from promohub.api.rate_limit import limiter
from promohub.core.security import get_password_hash
from promohub.database import Base, get_db
from promohub.main import app
from promohub.models import (
    Tenant,
    User,
    UserRole,
    Product,
    CommissionTier,
)
from promohub.services.auth_service import AuthService

PASSWORD = "Sup3rSecret!"


@pytest.fixture
async def engine():
    # One shared in-memory connection for request-level tests. Tests that
    # need real concurrent connections use file_session_factory.
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        pool_reset_on_return=None,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def file_session_factory(tmp_path):
    """
    Session factory over a file-backed database with a real connection pool,
    so concurrent sessions each hold their own connection. Writers queue on
    the SQLite busy timeout.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'promohub.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    limiter.reset()
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Seed helpers ====================

async def make_tenant(db: AsyncSession, subdomain: str) -> Tenant:
    tenant = Tenant(name=f"{subdomain.title()} Inc", subdomain=subdomain, settings={})
    db.add(tenant)
    await db.commit()
    return tenant


async def make_user(
    db: AsyncSession,
    tenant: Tenant,
    email: str,
    role: UserRole = UserRole.ADMIN,
    password: str = PASSWORD,
) -> User:
    user = User(
        tenant_id=tenant.id,
        email=email,
        password_hash=get_password_hash(password),
        first_name=email.split("@")[0].title(),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


async def make_product(
    db: AsyncSession,
    tenant: Tenant,
    sku: str,
    commission_percent: Optional[str] = None,
    price: str = "49.99",
) -> Product:
    product = Product(
        tenant_id=tenant.id,
        name=f"Product {sku}",
        sku_code=sku,
        price=Decimal(price),
        currency="USD",
        commission_percent=Decimal(commission_percent) if commission_percent is not None else None,
        status="active",
    )
    db.add(product)
    await db.commit()
    return product


async def make_tier(db: AsyncSession, tenant: Tenant, name: str, percent: str, min_sales: str = "0") -> CommissionTier:
    tier = CommissionTier(
        tenant_id=tenant.id,
        tier_name=name,
        commission_percent=Decimal(percent),
        min_sales=Decimal(min_sales),
    )
    db.add(tier)
    await db.commit()
    return tier


def auth_headers(user: User) -> dict:
    token, _ = AuthService.create_token(user)
    return {"Authorization": f"Bearer {token}"}


async def invite_and_accept(
    client: AsyncClient,
    admin: User,
    email: str,
    products: list,
    product_rate_for: tuple = (),
) -> dict:
    """Invite ``email`` to ``products`` through the API and accept it."""
    response = await client.post(
        "/api/affiliates/invite",
        json={
            "email": email,
            "products": [
                {"product_id": str(p.id), "use_product_commission": p in product_rate_for}
                for p in products
            ],
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 201, response.text
    token = response.json()["token"]

    response = await client.post(
        "/api/affiliates/accept",
        json={"token": token, "password": PASSWORD, "first_name": "Ava"},
    )
    assert response.status_code == 200, response.text
    return response.json()


# ==================== Common fixtures ====================

@pytest.fixture
async def tenant(db):
    return await make_tenant(db, "acme")


@pytest.fixture
async def other_tenant(db):
    return await make_tenant(db, "globex")


@pytest.fixture
async def admin(db, tenant):
    return await make_user(db, tenant, "admin@acme.io", UserRole.ADMIN)


@pytest.fixture
async def other_admin(db, other_tenant):
    return await make_user(db, other_tenant, "admin@globex.io", UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
