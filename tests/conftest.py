import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REDIS_URL"] = ""
os.environ["LOG_TO_FILE"] = "false"

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from stock_ledger.main import app
from stock_ledger.core.database import get_async_session
from stock_ledger.core.security import create_access_token
from stock_ledger.api.dependencies import get_stock_broadcaster
from stock_ledger.models.base import Base
from stock_ledger.models.auth.user import User
from stock_ledger.models.inventory.part import Part
from stock_ledger.models.shared.enums import UserRole
from stock_ledger.services.notification.stock_broadcaster import StockUpdateBroadcaster

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class SteppingClock:
    """Clock that moves forward a fixed step on every call"""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


class RecordingPublisher:
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()

@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session

@pytest.fixture
def clock():
    return SteppingClock()

@pytest.fixture
def publisher():
    return RecordingPublisher()

async def _create_user(session_maker, email: str, role: UserRole) -> User:
    async with session_maker() as session:
        user = User(email=email, full_name=email.split("@")[0].title(), role=role, is_active=True)
        session.add(user)
        await session.commit()
        return user

@pytest.fixture
async def admin_user(session_maker) -> User:
    return await _create_user(session_maker, "admin@stock.test", UserRole.ADMIN)

@pytest.fixture
async def student_user(session_maker) -> User:
    return await _create_user(session_maker, "student@stock.test", UserRole.STUDENT)

@pytest.fixture
def make_part(session_maker):
    """Factory for persisted parts"""
    counter = {"n": 0}

    async def _make_part(name: str = None, category: str = "Electronics", sku: str = None) -> Part:
        counter["n"] += 1
        async with session_maker() as session:
            part = Part(
                name=name or f"Part {counter['n']}",
                category=category,
                sku=sku or f"SKU-{counter['n']:04d}",
            )
            session.add(part)
            await session.commit()
            return part

    return _make_part

@pytest.fixture
async def part(make_part) -> Part:
    return await make_part(name="Arduino Uno", category="Electronics", sku="ARD-UNO")

@pytest.fixture
def broadcaster():
    return StockUpdateBroadcaster(channel="stockUpdate", redis=None)

@pytest.fixture
async def client(session_maker, broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """Create test client"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_stock_broadcaster] = lambda: broadcaster

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

@pytest.fixture
def admin_headers(admin_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}

@pytest.fixture
def student_headers(student_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(student_user.id)}"}
