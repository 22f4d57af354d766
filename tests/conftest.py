"""
Shared test fixtures and configuration for pytest.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_db
from app.core.settings_service import CardPolicyService
from app.db.base import Base
from app.main import app
from app.models.user_model import User
from app.schemas.user_schemas import UserRole
from app.task.card_sweep import CardDeactivationSweep
from factories import create_patient, create_user


# Test database configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """
    One in-memory database per test.

    StaticPool keeps a single connection so every session sees the same
    tables.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session used by fixtures to seed data."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_card_policy_cache():
    """The card policy cache is module level; keep tests independent."""
    CardPolicyService.invalidate_cache()
    yield
    CardPolicyService.invalidate_cache()


@pytest.fixture
def card_sweep(session_factory) -> CardDeactivationSweep:
    return CardDeactivationSweep(
        session_factory=session_factory,
        tz=timezone.utc,
        catch_up_on_startup=False,
    )


@pytest.fixture
async def client(session_factory, card_sweep) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client bound to the test database.

    Each request gets its own session, the way get_db behaves in production.
    """

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.card_sweep = card_sweep
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.card_sweep = None


# ============= Users =============
@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.ADMIN, "admin", "Adjoa", "Boateng")


@pytest.fixture
async def receptionist(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, UserRole.RECEPTIONIST, "reception", "Efua", "Owusu"
    )


@pytest.fixture
async def doctor_a(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.DOCTOR, "doctor_a", "Kwame", "Asante")


@pytest.fixture
async def doctor_b(db_session: AsyncSession) -> User:
    return await create_user(db_session, UserRole.DOCTOR, "doctor_b", "Yaw", "Darko")


@pytest.fixture
async def pharmacist(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, UserRole.PHARMACIST, "pharmacist", "Akosua", "Appiah"
    )


# ============= Patients =============
@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
async def ward(db_session: AsyncSession, doctor_a: User, doctor_b: User, now: datetime):
    """
    P1: doctor A, usable card. P2: doctor A, expired card.
    P3: doctor B, usable card.
    """
    p1 = await create_patient(
        db_session,
        "P-001",
        card_expiry_date=now + timedelta(days=20),
        last_daily_activation=now,
        assigned_doctor_id=doctor_a.id,
        first_name="Abena",
    )
    p2 = await create_patient(
        db_session,
        "P-002",
        card_expiry_date=now - timedelta(days=2),
        last_daily_activation=now,
        assigned_doctor_id=doctor_a.id,
        first_name="Kojo",
    )
    p3 = await create_patient(
        db_session,
        "P-003",
        card_expiry_date=now + timedelta(days=20),
        last_daily_activation=now,
        assigned_doctor_id=doctor_b.id,
        first_name="Esi",
    )
    return {"P1": p1, "P2": p2, "P3": p3}

