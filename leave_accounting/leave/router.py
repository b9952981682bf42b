"""Leave router: submit, decide, cancel, balances, team views, reports.

Authentication is out of scope: the acting employee is named explicitly
in the path or body of each call.
"""


import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, status

from leave_accounting.common.constants import LeaveStatus
from leave_accounting.common.exceptions import LeaveRejectedException
from leave_accounting.dependencies import get_clock, get_engine, get_repository
from leave_accounting.leave.engine import LeaveAccountingEngine
from leave_accounting.leave.repository import SqlAlchemyLeaveRepository
from leave_accounting.leave.schemas import (
    BalanceOut,
    EmployeeLeaveSummaryOut,
    LeaveCancelRequest,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeOut,
    ManagerDashboardOut,
    ManagerReportOut,
)
from leave_accounting.leave.validator import Rejected

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["leave"])


def _year_or_current(year: Optional[int], clock: Callable[[], datetime]) -> int:
    return year if year is not None else clock().year


# ── POST /requests ──────────────────────────────────────────────────

@router.post(
    "/requests",
    response_model=LeaveRequestOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_leave(
    body: LeaveRequestCreate,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Apply for leave. Rejections are returned as 422 with a reason code."""
    result = await engine.submit(
        body.employee_id,
        body.leave_type_id,
        body.start_date,
        body.end_date,
        reason=body.reason,
        is_emergency=body.is_emergency,
    )
    if isinstance(result, Rejected):
        logger.info(
            "Leave submission by %s rejected: %s", body.employee_id, result.reason.value,
        )
        raise LeaveRejectedException(result.reason, result.message)
    return result


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    return await engine.get_request(request_id)


# ── POST /requests/{id}/decision ────────────────────────────────────

@router.post("/requests/{request_id}/decision", response_model=LeaveRequestOut)
async def decide_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Approve or reject a pending request. Rejections require remarks."""
    return await engine.decide(
        request_id, body.decider_id, body.outcome, remarks=body.remarks,
    )


# ── POST /requests/{id}/cancel ──────────────────────────────────────

@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Cancel a pending request (owner only)."""
    return await engine.cancel(request_id, body.requester_id, reason=body.reason)


# ── GET /employees/{id}/requests ────────────────────────────────────

@router.get(
    "/employees/{employee_id}/requests",
    response_model=list[LeaveRequestOut],
)
async def employee_requests(
    employee_id: uuid.UUID,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Leave history of one employee, newest first."""
    return await engine.list_requests(employee_id)


# ── GET /employees/{id}/balances ────────────────────────────────────

@router.get(
    "/employees/{employee_id}/balances",
    response_model=list[BalanceOut],
)
async def employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    engine: LeaveAccountingEngine = Depends(get_engine),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Balances for every active leave type (defaults to the current year)."""
    return await engine.get_balances(employee_id, _year_or_current(year, clock))


@router.get(
    "/employees/{employee_id}/balances/{leave_type_id}",
    response_model=BalanceOut,
)
async def employee_balance(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    engine: LeaveAccountingEngine = Depends(get_engine),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    return await engine.get_balance(
        employee_id, leave_type_id, _year_or_current(year, clock),
    )


# ── GET /employees/{id}/summary ─────────────────────────────────────

@router.get(
    "/employees/{employee_id}/summary",
    response_model=EmployeeLeaveSummaryOut,
)
async def employee_summary(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    engine: LeaveAccountingEngine = Depends(get_engine),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Employee dashboard: days taken, pending requests, balances."""
    return await engine.employee_summary(employee_id, _year_or_current(year, clock))


# ── GET /managers/{id}/pending ──────────────────────────────────────

@router.get(
    "/managers/{manager_id}/pending",
    response_model=list[LeaveRequestOut],
)
async def team_pending(
    manager_id: uuid.UUID,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Pending requests of direct reports awaiting a decision, oldest first."""
    return await engine.list_pending_for_manager(manager_id)


# ── GET /managers/{id}/requests ─────────────────────────────────────

@router.get(
    "/managers/{manager_id}/requests",
    response_model=list[LeaveRequestOut],
)
async def team_requests(
    manager_id: uuid.UUID,
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """All requests of direct reports, newest first; ``status`` narrows the list."""
    return await engine.list_requests_for_manager(manager_id, status_filter)


# ── GET /managers/{id}/dashboard ────────────────────────────────────

@router.get(
    "/managers/{manager_id}/dashboard",
    response_model=ManagerDashboardOut,
)
async def manager_dashboard(
    manager_id: uuid.UUID,
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    return await engine.manager_dashboard(manager_id)


# ── GET /managers/{id}/report ───────────────────────────────────────

@router.get(
    "/managers/{manager_id}/report",
    response_model=ManagerReportOut,
)
async def manager_report(
    manager_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    engine: LeaveAccountingEngine = Depends(get_engine),
):
    """Request statistics over direct reports; all years when ``year`` is omitted."""
    return await engine.manager_report(manager_id, year)


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    repository: SqlAlchemyLeaveRepository = Depends(get_repository),
):
    """Active leave types available for new requests."""
    return await repository.list_leave_types(is_active=True)
