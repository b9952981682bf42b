"""Administration service tests: leave types, employees, holidays,
organisation-wide request list, dashboard and audit history."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leave_accounting.admin.service import AdminService
from leave_accounting.common.audit import get_audit_entries
from leave_accounting.common.constants import DecisionOutcome, LeaveStatus
from leave_accounting.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from leave_accounting.common.pagination import PaginationParams
from leave_accounting.core_hr.schemas import EmployeeCreate
from leave_accounting.leave.engine import LeaveAccountingEngine
from leave_accounting.leave.models import LeaveType
from leave_accounting.leave.repository import SqlAlchemyLeaveRepository
from leave_accounting.leave.schemas import (
    HolidayCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeUpdate,
)
from tests.conftest import NOW, fixed_clock, seed_employee


def _leave_type_payload(name: str = "Casual Leave", **overrides) -> LeaveTypeCreate:
    fields = dict(
        name=name,
        description="General purpose leave",
        default_days_per_year=12,
        max_consecutive_days=5,
    )
    fields.update(overrides)
    return LeaveTypeCreate(**fields)


def _employee_payload(code: str = "EMP-001", email: str = "ana@example.com", **overrides) -> EmployeeCreate:
    fields = dict(
        employee_code=code,
        first_name="Ana",
        last_name="Lopez",
        email=email,
        department="Finance",
        date_of_joining=date(2023, 6, 1),
    )
    fields.update(overrides)
    return EmployeeCreate(**fields)


# ═════════════════════════════════════════════════════════════════════
# 1. Leave types
# ═════════════════════════════════════════════════════════════════════


class TestLeaveTypes:

    async def test_create_and_list(self, db: AsyncSession):
        created = await AdminService.create_leave_type(db, _leave_type_payload())

        assert created.is_active is True
        listed = await AdminService.list_leave_types(db)
        assert [lt.id for lt in listed] == [created.id]

    async def test_create_is_audited(self, db: AsyncSession):
        actor = uuid.uuid4()
        created = await AdminService.create_leave_type(db, _leave_type_payload(), actor_id=actor)

        entries = await get_audit_entries(db, "leave_type", created.id)

        assert [e.action for e in entries] == ["create"]
        assert entries[0].actor_id == actor

    async def test_duplicate_name_conflicts(self, db: AsyncSession):
        await AdminService.create_leave_type(db, _leave_type_payload("Sick Leave"))

        with pytest.raises(ConflictError) as exc_info:
            await AdminService.create_leave_type(db, _leave_type_payload("sick leave"))

        assert exc_info.value.field == "name"

    async def test_partial_update(self, db: AsyncSession):
        created = await AdminService.create_leave_type(db, _leave_type_payload())

        updated = await AdminService.update_leave_type(
            db, created.id, LeaveTypeUpdate(default_days_per_year=15),
        )

        assert updated.default_days_per_year == 15
        assert updated.max_consecutive_days == 5
        assert updated.name == "Casual Leave"

    async def test_rename_onto_existing_conflicts(self, db: AsyncSession):
        await AdminService.create_leave_type(db, _leave_type_payload("Sick Leave"))
        casual = await AdminService.create_leave_type(db, _leave_type_payload())

        with pytest.raises(ConflictError):
            await AdminService.update_leave_type(db, casual.id, LeaveTypeUpdate(name="Sick Leave"))

    async def test_update_unknown(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await AdminService.update_leave_type(db, uuid.uuid4(), LeaveTypeUpdate(is_paid=False))

    async def test_deactivate_hides_from_default_list(self, db: AsyncSession):
        created = await AdminService.create_leave_type(db, _leave_type_payload())

        result = await AdminService.deactivate_leave_type(db, created.id)

        assert result.is_active is False
        assert await AdminService.list_leave_types(db) == []
        everything = await AdminService.list_leave_types(db, include_inactive=True)
        assert [lt.id for lt in everything] == [created.id]

    async def test_delete_unused(self, db: AsyncSession):
        created = await AdminService.create_leave_type(db, _leave_type_payload())

        await AdminService.delete_leave_type(db, created.id)

        assert await db.get(LeaveType, created.id) is None

    async def test_delete_referenced_refused(self, db: AsyncSession):
        emp = await seed_employee(db)
        created = await AdminService.create_leave_type(db, _leave_type_payload())
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        req = await engine.submit(emp.id, created.id, date(2025, 3, 10), date(2025, 3, 11))
        assert isinstance(req, LeaveRequestOut)

        with pytest.raises(ConflictError) as exc_info:
            await AdminService.delete_leave_type(db, created.id)

        assert "deactivate" in exc_info.value.detail
        assert await db.get(LeaveType, created.id) is not None

    async def test_policy_change_keeps_frozen_days(self, db: AsyncSession):
        emp = await seed_employee(db)
        created = await AdminService.create_leave_type(db, _leave_type_payload())
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        req = await engine.submit(emp.id, created.id, date(2025, 3, 10), date(2025, 3, 14))

        await AdminService.update_leave_type(
            db, created.id, LeaveTypeUpdate(max_consecutive_days=2, default_days_per_year=20),
        )

        stored = await engine.get_request(req.id)
        assert stored.chargeable_days == 5
        bal = await engine.get_balance(emp.id, created.id, 2025)
        assert (bal.total, bal.pending, bal.remaining) == (20, 5, 15)

    async def test_deactivated_type_rejects_new_requests(self, db: AsyncSession):
        emp = await seed_employee(db)
        created = await AdminService.create_leave_type(db, _leave_type_payload())
        await AdminService.deactivate_leave_type(db, created.id)
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)

        outcome = await engine.submit(emp.id, created.id, date(2025, 3, 10), date(2025, 3, 11))

        assert outcome.reason.value == "not_found"


# ═════════════════════════════════════════════════════════════════════
# 2. Employees
# ═════════════════════════════════════════════════════════════════════


class TestEmployees:

    async def test_provision(self, db: AsyncSession):
        emp = await AdminService.provision_employee(db, _employee_payload())

        assert emp.employee_code == "EMP-001"
        assert emp.full_name == "Ana Lopez"
        assert emp.is_active is True
        fetched = await AdminService.get_employee(db, emp.id)
        assert fetched.email == "ana@example.com"

    async def test_duplicate_code(self, db: AsyncSession):
        await AdminService.provision_employee(db, _employee_payload())
        with pytest.raises(ConflictError) as exc_info:
            await AdminService.provision_employee(db, _employee_payload(email="other@example.com"))
        assert exc_info.value.field == "employee_code"

    async def test_duplicate_email(self, db: AsyncSession):
        await AdminService.provision_employee(db, _employee_payload())
        with pytest.raises(ConflictError) as exc_info:
            await AdminService.provision_employee(db, _employee_payload(code="EMP-002"))
        assert exc_info.value.field == "email"

    async def test_unknown_manager(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await AdminService.provision_employee(db, _employee_payload(manager_id=uuid.uuid4()))

    async def test_get_unknown(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await AdminService.get_employee(db, uuid.uuid4())

    async def test_reassign_and_clear_manager(self, db: AsyncSession):
        boss = await seed_employee(db, first_name="Boss")
        emp = await seed_employee(db)

        assigned = await AdminService.reassign_manager(db, emp.id, boss.id)
        assert assigned.manager_id == boss.id

        cleared = await AdminService.reassign_manager(db, emp.id, None)
        assert cleared.manager_id is None

    async def test_self_management_refused(self, db: AsyncSession):
        emp = await seed_employee(db)
        with pytest.raises(ValidationException):
            await AdminService.reassign_manager(db, emp.id, emp.id)

    async def test_reporting_cycle_refused(self, db: AsyncSession):
        """top ← middle ← bottom; making bottom manage top closes a loop."""
        top = await seed_employee(db, first_name="Top")
        middle = await seed_employee(db, first_name="Middle", manager_id=top.id)
        bottom = await seed_employee(db, first_name="Bottom", manager_id=middle.id)

        with pytest.raises(ValidationException) as exc_info:
            await AdminService.reassign_manager(db, top.id, bottom.id)

        assert "cycle" in exc_info.value.errors["manager_id"][0]

    async def test_list_paginated_and_filtered(self, db: AsyncSession):
        boss = await seed_employee(db, first_name="Boss")
        for _ in range(3):
            await seed_employee(db, manager_id=boss.id)

        page = await AdminService.list_employees(
            db, PaginationParams(page=1, page_size=2, sort=None),
        )
        assert page.meta.total == 4
        assert page.meta.total_pages == 2
        assert page.meta.has_next is True
        assert len(page.data) == 2

        team = await AdminService.list_employees(
            db, PaginationParams(page=1, page_size=10, sort=None), manager_id=boss.id,
        )
        assert team.meta.total == 3
        assert all(e.manager_id == boss.id for e in team.data)


# ═════════════════════════════════════════════════════════════════════
# 3. Holidays
# ═════════════════════════════════════════════════════════════════════


class TestHolidays:

    async def test_add_and_list_by_year(self, db: AsyncSession):
        await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2025, 12, 25), name="Christmas"))
        await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2025, 1, 1), name="New Year"))
        await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2026, 1, 1), name="New Year"))

        holidays = await AdminService.list_holidays(db, 2025)

        assert [h.name for h in holidays] == ["New Year", "Christmas"]

    async def test_duplicate_date_conflicts(self, db: AsyncSession):
        await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2025, 8, 15), name="Independence Day"))
        with pytest.raises(ConflictError):
            await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2025, 8, 15), name="Duplicate"))

    async def test_remove(self, db: AsyncSession):
        holiday = await AdminService.add_holiday(
            db, HolidayCreate(holiday_date=date(2025, 5, 1), name="Labour Day"),
        )
        await AdminService.remove_holiday(db, holiday.id)
        assert await AdminService.list_holidays(db, 2025) == []

    async def test_remove_unknown(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await AdminService.remove_holiday(db, uuid.uuid4())

    async def test_holiday_applies_to_new_requests_only(self, db: AsyncSession):
        emp = await seed_employee(db)
        lt = await AdminService.create_leave_type(db, _leave_type_payload())
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        before = await engine.submit(emp.id, lt.id, date(2025, 3, 10), date(2025, 3, 12))

        await AdminService.add_holiday(db, HolidayCreate(holiday_date=date(2025, 3, 18), name="Festival"))
        after = await engine.submit(emp.id, lt.id, date(2025, 3, 17), date(2025, 3, 19))

        assert before.chargeable_days == 3
        assert after.chargeable_days == 2
        assert (await engine.get_request(before.id)).chargeable_days == 3


# ═════════════════════════════════════════════════════════════════════
# 4. Organisation-wide requests, dashboard, audit history
# ═════════════════════════════════════════════════════════════════════


async def _seed_org(db: AsyncSession):
    """Two teams: Engineering (Maya → Eli, Ivy) and Sales (Sam → Sol)."""
    maya = await seed_employee(db, first_name="Maya", last_name="Manager")
    eli = await seed_employee(db, first_name="Eli", last_name="Employee", manager_id=maya.id)
    ivy = await seed_employee(db, first_name="Ivy", last_name="Ng", manager_id=maya.id)
    sam = await seed_employee(db, first_name="Sam", last_name="Seller")
    sol = await seed_employee(db, first_name="Sol", last_name="Vendor", manager_id=sam.id)
    for emp in (sam, sol):
        emp.department = "Sales"
    await db.flush()
    lt = await AdminService.create_leave_type(db, _leave_type_payload())
    return maya, eli, ivy, sam, sol, lt


class TestOrganisationViews:

    async def test_list_leave_requests(self, db: AsyncSession):
        maya, eli, ivy, sam, sol, lt = await _seed_org(db)
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        r1 = await engine.submit(eli.id, lt.id, date(2025, 3, 10), date(2025, 3, 11))
        r2 = await engine.submit(ivy.id, lt.id, date(2025, 3, 12), date(2025, 3, 12))
        r3 = await engine.submit(sol.id, lt.id, date(2025, 3, 13), date(2025, 3, 14))
        await engine.decide(r2.id, maya.id, DecisionOutcome.rejected, "Sprint review")

        everything = await AdminService.list_leave_requests(
            db, PaginationParams(page=1, page_size=2, sort=None),
        )
        assert everything.meta.total == 3
        assert everything.meta.has_next is True
        assert len(everything.data) == 2

        rejected = await AdminService.list_leave_requests(
            db, PaginationParams(page=1, page_size=10, sort=None), status=LeaveStatus.rejected,
        )
        assert [r.id for r in rejected.data] == [r2.id]
        assert rejected.data[0].employee_name == "Ivy Ng"
        assert rejected.data[0].leave_type_name == "Casual Leave"
        assert rejected.data[0].decision.decided_by == maya.id

        sales = await AdminService.list_leave_requests(
            db, PaginationParams(page=1, page_size=10, sort=None), department="sales",
        )
        assert [r.id for r in sales.data] == [r3.id]
        assert sales.data[0].department == "Sales"

        found = await AdminService.list_leave_requests(
            db, PaginationParams(page=1, page_size=10, sort=None), search="eli",
        )
        assert [r.id for r in found.data] == [r1.id]

    async def test_dashboard(self, db: AsyncSession):
        maya, eli, ivy, sam, sol, lt = await _seed_org(db)
        await seed_employee(db, first_name="Gone", is_active=False)
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        away = await engine.submit(
            eli.id, lt.id, date(2025, 2, 28), date(2025, 3, 3), is_emergency=True,
        )
        later = await engine.submit(ivy.id, lt.id, date(2025, 3, 10), date(2025, 3, 12))
        dropped = await engine.submit(ivy.id, lt.id, date(2025, 3, 17), date(2025, 3, 17))
        await engine.submit(sol.id, lt.id, date(2025, 3, 13), date(2025, 3, 14))
        await engine.decide(away.id, maya.id, DecisionOutcome.approved)
        await engine.decide(later.id, maya.id, DecisionOutcome.approved)
        await engine.cancel(dropped.id, ivy.id)

        dash = await AdminService.get_dashboard(db, NOW.date())

        assert dash.as_of == NOW.date()
        assert dash.total_employees == 5
        assert (dash.pending_requests, dash.approved_requests) == (1, 2)
        assert (dash.rejected_requests, dash.cancelled_requests) == (0, 1)
        assert dash.on_leave_today == 1
        assert [(d.department, d.approved_requests, d.approved_days) for d in dash.departments] == [
            ("Engineering", 2, 5),
            ("Sales", 0, 0),
        ]

    async def test_audit_history(self, db: AsyncSession):
        maya, eli, ivy, sam, sol, lt = await _seed_org(db)
        engine = LeaveAccountingEngine(SqlAlchemyLeaveRepository(db), clock=fixed_clock)
        req = await engine.submit(eli.id, lt.id, date(2025, 3, 10), date(2025, 3, 11))
        await engine.decide(req.id, maya.id, DecisionOutcome.rejected, "Quarter close")

        history = await AdminService.get_audit_history(db, "leave_request", req.id)

        assert sorted((e.action, e.actor_name) for e in history) == [
            ("reject", "Maya Manager"),
            ("submit", "Eli Employee"),
        ]
        reject = next(e for e in history if e.action == "reject")
        assert reject.new_values["remarks"] == "Quarter close"

    async def test_audit_history_unknown_entity(self, db: AsyncSession):
        assert await AdminService.get_audit_history(db, "leave_request", uuid.uuid4()) == []
