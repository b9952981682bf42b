"""Leave ORM models: LeaveType, LeaveRequest, Holiday."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leave_accounting.common.constants import LeaveStatus
from leave_accounting.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    default_days_per_year: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0,
    )
    is_paid: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
    requires_approval: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
    max_consecutive_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    # Relationships
    requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="leave_type", passive_deletes=True,
    )

    __table_args__ = (
        sa.CheckConstraint("default_days_per_year >= 0", name="ck_leave_type_allotment"),
        sa.CheckConstraint("max_consecutive_days >= 1", name="ck_leave_type_max_consecutive"),
    )


class LeaveRequest(Base):
    """One ledger entry. ``chargeable_days`` is frozen at submission."""

    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    # RESTRICT: a leave type referenced by any request is never physically removed
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_emergency: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.false(),
    )
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    chargeable_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    applied_on: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    decided_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    decision_remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    # Relationships
    employee: Mapped["leave_accounting.core_hr.models.Employee"] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    decider: Mapped[Optional["leave_accounting.core_hr.models.Employee"]] = relationship(
        foreign_keys=[decided_by]
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")

    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_request_range"),
        sa.CheckConstraint("chargeable_days >= 1", name="ck_leave_request_chargeable"),
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        sa.Index("ix_leave_requests_status", "status"),
    )


class Holiday(Base):
    """Public holiday supplied as data; excluded from chargeable days."""

    __tablename__ = "holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    holiday_date: Mapped[date] = mapped_column(
        "date", sa.Date, unique=True, nullable=False,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
