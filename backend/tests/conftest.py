import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from decimal import Decimal
from typing import Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import openbook.models  # noqa: F401 - register all models
from openbook.core.security import create_access_token, create_admin_token
from openbook.database import Base, get_db
from openbook.main import app
from openbook.models.user import Admin, AdminRole, User
from openbook.models.ledger import LedgerKind
from openbook.services import ledger

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def mock_scheduler(monkeypatch):
    """Keep the mining sweep scheduler out of tests."""
    monkeypatch.setattr("openbook.main.scheduler", MagicMock())


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_db():
        async with SessionLocal() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    yield SessionLocal
    app.dependency_overrides.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


_wallet_seq = iter(range(1, 1_000_000))


def _wallet() -> str:
    return "0x" + format(next(_wallet_seq), "040x")


async def make_admin(db, role: AdminRole = AdminRole.admin, managed_by: Optional[int] = None) -> Admin:
    admin = Admin(wallet_address=_wallet(), username=f"{role.value}-admin", role=role, managed_by=managed_by)
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    return admin


async def make_user(db, usdt: Decimal = Decimal("0"), managed_by: Optional[int] = None, **holdings) -> User:
    user = User(wallet_address=_wallet(), username="trader", managed_by=managed_by)
    db.add(user)
    await db.flush()
    await ledger.ensure_account(db, user.id)
    if usdt:
        await ledger.apply_delta(db, user.id, "USDT", Decimal(usdt), LedgerKind.topup, note="seed")
    for asset, amount in holdings.items():
        await ledger.apply_delta(db, user.id, asset, Decimal(amount), LedgerKind.topup, note="seed")
    await db.commit()
    await db.refresh(user)
    return user


def user_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def admin_headers(admin: Admin) -> dict:
    return {"Authorization": f"Bearer {create_admin_token(admin.id, admin.role.value)}"}
