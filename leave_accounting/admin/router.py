"""Admin router: leave types, employees, holidays, request oversight, audit.

The acting administrator may be named with the optional ``actor_id``
query parameter; it is recorded in the audit trail only.
"""


import uuid
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from leave_accounting.admin.schemas import AdminDashboardOut, AuditEntryOut, LeaveRequestListItem
from leave_accounting.admin.service import AdminService
from leave_accounting.common.constants import LeaveStatus
from leave_accounting.common.pagination import PaginatedResponse, PaginationParams
from leave_accounting.core_hr.schemas import EmployeeCreate, EmployeeOut, ManagerAssignRequest
from leave_accounting.database import get_db
from leave_accounting.dependencies import get_clock
from leave_accounting.leave.schemas import (
    HolidayCreate,
    HolidayOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)

router = APIRouter(prefix="", tags=["admin"])


# ── Leave types ─────────────────────────────────────────────────────

@router.get("/leave-types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.list_leave_types(db, include_inactive=include_inactive)


@router.post(
    "/leave-types",
    response_model=LeaveTypeOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_leave_type(
    body: LeaveTypeCreate,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.create_leave_type(db, body, actor_id=actor_id)


@router.patch("/leave-types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.update_leave_type(db, leave_type_id, body, actor_id=actor_id)


@router.post("/leave-types/{leave_type_id}/deactivate", response_model=LeaveTypeOut)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.deactivate_leave_type(db, leave_type_id, actor_id=actor_id)


@router.delete(
    "/leave-types/{leave_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Refused with 409 while any leave request references the type."""
    await AdminService.delete_leave_type(db, leave_type_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Employees ───────────────────────────────────────────────────────

@router.get("/employees", response_model=PaginatedResponse[EmployeeOut])
async def list_employees(
    manager_id: Optional[uuid.UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.list_employees(
        db, pagination, manager_id=manager_id, is_active=is_active,
    )


@router.get("/employees/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.get_employee(db, employee_id)


@router.post(
    "/employees",
    response_model=EmployeeOut,
    status_code=status.HTTP_201_CREATED,
)
async def provision_employee(
    body: EmployeeCreate,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.provision_employee(db, body, actor_id=actor_id)


@router.put("/employees/{employee_id}/manager", response_model=EmployeeOut)
async def reassign_manager(
    employee_id: uuid.UUID,
    body: ManagerAssignRequest,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Set or clear (``manager_id: null``) the employee's manager."""
    return await AdminService.reassign_manager(
        db, employee_id, body.manager_id, actor_id=actor_id,
    )


# ── Holidays ────────────────────────────────────────────────────────

@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(
    year: int = Query(..., ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.list_holidays(db, year)


@router.post(
    "/holidays",
    response_model=HolidayOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_holiday(
    body: HolidayCreate,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.add_holiday(db, body, actor_id=actor_id)


@router.delete(
    "/holidays/{holiday_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_holiday(
    holiday_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    await AdminService.remove_holiday(db, holiday_id, actor_id=actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Leave requests ──────────────────────────────────────────────────

@router.get("/leave-requests", response_model=PaginatedResponse[LeaveRequestListItem])
async def list_leave_requests(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    department: Optional[str] = Query(None, max_length=150),
    search: Optional[str] = Query(None, max_length=100),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """All leave requests in the organisation, newest first."""
    return await AdminService.list_leave_requests(
        db, pagination, status=status_filter, department=department, search=search,
    )


# ── Dashboard ───────────────────────────────────────────────────────

@router.get("/dashboard", response_model=AdminDashboardOut)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    return await AdminService.get_dashboard(db, clock().date())


# ── Audit trail ─────────────────────────────────────────────────────

@router.get("/audit/{entity_type}/{entity_id}", response_model=list[AuditEntryOut])
async def audit_history(
    entity_type: str,
    entity_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Change history of a leave request, leave type, employee or holiday."""
    return await AdminService.get_audit_history(db, entity_type, entity_id)
