"""Admin Pydantic v2 schemas: organisation-wide request list, dashboard, audit."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from leave_accounting.common.constants import LeaveStatus
from leave_accounting.leave.schemas import DecisionMeta


# ═════════════════════════════════════════════════════════════════════
# Leave requests (organisation-wide)
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestListItem(BaseModel):
    """One row of the admin request table."""

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    department: Optional[str] = None
    leave_type_id: uuid.UUID
    leave_type_name: str
    start_date: date
    end_date: date
    chargeable_days: int
    status: LeaveStatus
    is_emergency: bool = False
    reason: Optional[str] = None
    applied_on: datetime
    decision: Optional[DecisionMeta] = None


# ═════════════════════════════════════════════════════════════════════
# Dashboard
# ═════════════════════════════════════════════════════════════════════


class DepartmentLeaveItem(BaseModel):
    """Approved leave of one department."""

    department: str
    approved_requests: int = 0
    approved_days: int = 0


class AdminDashboardOut(BaseModel):
    """Organisation-wide leave KPIs."""

    as_of: date
    total_employees: int = Field(0, description="Active employees")
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    cancelled_requests: int = 0
    on_leave_today: int = 0
    departments: list[DepartmentLeaveItem] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Audit trail
# ═════════════════════════════════════════════════════════════════════


class AuditEntryOut(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    actor_name: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    created_at: datetime
