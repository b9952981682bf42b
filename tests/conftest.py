"""Shared test fixtures: async DB, client, clock, factories.

Reusable across all test modules (calendar, validator, ledger, engine,
admin, API). Uses SQLite + aiosqlite for fast isolated tests without
PostgreSQL.
"""

from __future__ import annotations

import os

# Keep SQL echo off before any import touches pydantic-settings
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leave_accounting.database import Base, get_db
from leave_accounting.dependencies import get_clock
from leave_accounting.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (e.g. Employee → LeaveRequest)
import leave_accounting.common.audit  # noqa: F401
import leave_accounting.core_hr.models  # noqa: F401
import leave_accounting.leave.models  # noqa: F401

from leave_accounting.core_hr.models import Employee
from leave_accounting.leave.models import Holiday, LeaveType

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

# Fixed "now" for every test: Saturday 1 March 2025, 09:00 UTC
NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _override_get_clock():
    return fixed_clock


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB and clock dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_clock] = _override_get_clock
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    manager_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"user.{code.lower()}@example.com",
        department="Engineering",
        designation="Engineer",
        date_of_joining=date(2024, 1, 15),
        manager_id=manager_id,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_leave_type(
    *,
    name: str = "Casual Leave",
    default_days_per_year: int = 12,
    max_consecutive_days: int = 5,
    is_paid: bool = True,
    requires_approval: bool = True,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=f"{name} policy",
        default_days_per_year=default_days_per_year,
        max_consecutive_days=max_consecutive_days,
        is_paid=is_paid,
        requires_approval=requires_approval,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def seed_leave_type(db: AsyncSession, **kwargs) -> LeaveType:
    lt = LeaveType(**_make_leave_type(**kwargs))
    db.add(lt)
    await db.flush()
    return lt


async def seed_holiday(db: AsyncSession, day: date, name: str = "Holiday") -> Holiday:
    holiday = Holiday(id=uuid.uuid4(), holiday_date=day, name=name)
    db.add(holiday)
    await db.flush()
    return holiday


@pytest.fixture
async def test_manager(db) -> Employee:
    """An active employee with no manager of their own."""
    return await seed_employee(db, first_name="Maya", last_name="Manager")


@pytest.fixture
async def test_employee(db, test_manager) -> Employee:
    """An active employee reporting to ``test_manager``."""
    return await seed_employee(
        db, first_name="Eli", last_name="Employee", manager_id=test_manager.id,
    )


@pytest.fixture
async def casual_leave(db) -> LeaveType:
    """12 days a year, at most 5 consecutive chargeable days."""
    return await seed_leave_type(db)
