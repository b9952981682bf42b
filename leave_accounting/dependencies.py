"""Shared FastAPI dependencies."""

from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leave_accounting.config import settings
from leave_accounting.database import get_db
from leave_accounting.leave.engine import LeaveAccountingEngine
from leave_accounting.leave.repository import SqlAlchemyLeaveRepository


def get_clock() -> Callable[[], datetime]:
    """Wall clock used for "today" and decision timestamps; overridable in tests."""
    return lambda: datetime.now(timezone.utc)


async def get_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyLeaveRepository:
    """Repository bound to the request's session (one transaction per request)."""
    return SqlAlchemyLeaveRepository(db, timeout=settings.REPOSITORY_TIMEOUT_SECONDS)


async def get_engine(
    repository: SqlAlchemyLeaveRepository = Depends(get_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> LeaveAccountingEngine:
    return LeaveAccountingEngine(
        repository,
        lead_time_days=settings.LEAVE_LEAD_TIME_DAYS,
        exclude_weekends=settings.LEAVE_EXCLUDE_WEEKENDS,
        clock=clock,
    )
