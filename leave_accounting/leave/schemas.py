"""Leave Pydantic v2 schemas: ledger records, request / response validation.

Naming conventions:
  - *Create / *Request → request bodies (write)
  - *Out               → records and response bodies (read)
  - *Brief             → compact embedded representations

The *Out records double as the engine's domain types: the repository
returns them and the validator, ledger and engine operate on them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leave_accounting.common.constants import TERMINAL_STATUSES, DecisionOutcome, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    is_paid: bool = True


class LeaveTypeOut(BaseModel):
    """Full leave type (policy) definition."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    default_days_per_year: int = Field(..., ge=0)
    is_paid: bool = True
    requires_approval: bool = True
    max_consecutive_days: int = Field(..., ge=1)
    is_active: bool = True


class LeaveTypeCreate(BaseModel):
    """Payload for creating a leave type."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    default_days_per_year: int = Field(..., ge=0, le=366)
    is_paid: bool = True
    requires_approval: bool = True
    max_consecutive_days: int = Field(..., ge=1, le=366)
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    """Partial update of a leave type. Existing requests keep their frozen days."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    default_days_per_year: Optional[int] = Field(None, ge=0, le=366)
    is_paid: Optional[bool] = None
    requires_approval: Optional[bool] = None
    max_consecutive_days: Optional[int] = Field(None, ge=1, le=366)
    is_active: Optional[bool] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: records
# ═════════════════════════════════════════════════════════════════════


class DecisionMeta(BaseModel):
    """Who moved a request out of ``pending``, when, and why."""

    decided_by: uuid.UUID
    decided_at: datetime
    remarks: Optional[str] = None


class LeaveRequestOut(BaseModel):
    """A leave request as stored in the ledger."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None
    is_emergency: bool = False
    status: LeaveStatus
    chargeable_days: int = Field(..., ge=1)
    applied_on: datetime
    decision: Optional[DecisionMeta] = None
    version: int = 1

    @model_validator(mode="after")
    def check_invariants(self) -> "LeaveRequestOut":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        if (self.status in TERMINAL_STATUSES) != (self.decision is not None):
            raise ValueError(
                "Decision metadata must be present exactly when status is not pending."
            )
        return self

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and start <= self.end_date


# ═════════════════════════════════════════════════════════════════════
# Leave Request: write payloads
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request.

    ``end_date < start_date`` is deliberately not rejected here: range
    problems are reported by the validator as an ``invalid_range`` outcome
    so every admission rule answers in one place.
    """

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field("", max_length=1000, description="Reason for leave")
    is_emergency: bool = False


class LeaveDecisionRequest(BaseModel):
    """Payload for approving or rejecting a pending request."""

    decider_id: uuid.UUID
    outcome: DecisionOutcome
    remarks: str = Field("", max_length=500)


class LeaveCancelRequest(BaseModel):
    """Payload for an employee cancelling their own pending request."""

    requester_id: uuid.UUID
    reason: str = Field("", max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Balance
# ═════════════════════════════════════════════════════════════════════


class BalanceOut(BaseModel):
    """Derived balance for one employee / leave type / year."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total: int
    used: int
    pending: int
    remaining: int = Field(..., ge=0)

    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Dashboards / reports
# ═════════════════════════════════════════════════════════════════════


class EmployeeLeaveSummaryOut(BaseModel):
    """Employee dashboard: days taken, open requests, balances."""

    employee_id: uuid.UUID
    year: int
    days_taken: int
    pending_requests: int
    balances: list[BalanceOut]


class LeaveTypeCount(BaseModel):
    leave_type_id: uuid.UUID
    leave_type_name: str
    count: int


class EmployeeRequestCount(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    request_count: int


class ManagerReportOut(BaseModel):
    """Request statistics over a manager's direct reports."""

    manager_id: uuid.UUID
    year: Optional[int] = None
    total_requests: int = 0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    cancelled_requests: int = 0
    leave_type_distribution: list[LeaveTypeCount] = Field(default_factory=list)
    employee_request_counts: list[EmployeeRequestCount] = Field(default_factory=list)


class ManagerDashboardOut(BaseModel):
    """Manager dashboard KPIs as of ``as_of``."""

    manager_id: uuid.UUID
    as_of: date
    team_size: int = 0
    on_leave_today: int = Field(0, description="Direct reports with approved leave covering today")
    pending_approvals: int = 0
    approved_this_month: int = Field(0, description="Approved team requests applied this month")
    my_pending_requests: int = 0
    my_approved_requests: int = 0


# ═════════════════════════════════════════════════════════════════════
# Holidays
# ═════════════════════════════════════════════════════════════════════


class HolidayCreate(BaseModel):
    """Payload for adding a public holiday."""

    holiday_date: date
    name: str = Field(..., min_length=1, max_length=150)


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    holiday_date: date
    name: str
