"""Administration service layer: leave policy, employees, holidays, oversight.

Uses:
  - ``paginate()`` from leave_accounting.common.pagination
  - ``create_audit_entry / get_audit_entries`` from leave_accounting.common.audit
  - ``NotFoundException / ConflictError / ValidationException`` from
    leave_accounting.common.exceptions

Leave types are never physically removed while any request references
them; deactivation is the normal way to retire one. Changing a type's
allotment or limits never touches the frozen ``chargeable_days`` of
existing requests.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leave_accounting.admin.schemas import (
    AdminDashboardOut,
    AuditEntryOut,
    DepartmentLeaveItem,
    LeaveRequestListItem,
)
from leave_accounting.common.audit import create_audit_entry, get_audit_entries
from leave_accounting.common.constants import LeaveStatus
from leave_accounting.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from leave_accounting.common.pagination import PaginatedResponse, PaginationParams, paginate
from leave_accounting.core_hr.models import Employee
from leave_accounting.core_hr.schemas import EmployeeCreate, EmployeeOut
from leave_accounting.leave.models import Holiday, LeaveRequest, LeaveType
from leave_accounting.leave.repository import request_record
from leave_accounting.leave.schemas import (
    HolidayCreate,
    HolidayOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdminService:
    """Async maintenance operations behind the admin screens."""

    # ═════════════════════════════════════════════════════════════════
    # Leave types
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _load_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        lt = await db.get(LeaveType, leave_type_id)
        if lt is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return lt

    @staticmethod
    async def _ensure_leave_type_name_free(
        db: AsyncSession,
        name: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(func.lower(LeaveType.name) == name.lower())
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def list_leave_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[LeaveTypeOut]:
        query = select(LeaveType).order_by(LeaveType.name)
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeOut:
        """Create a leave type; names are unique (case-insensitive)."""
        await AdminService._ensure_leave_type_name_free(db, data.name)

        lt = LeaveType(**data.model_dump())
        db.add(lt)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("name", data.name)

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=lt.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Leave type %r created (%s)", lt.name, lt.id)
        return LeaveTypeOut.model_validate(lt)

    @staticmethod
    async def update_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeOut:
        """Partial update; only fields present in the payload change."""
        lt = await AdminService._load_leave_type(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return LeaveTypeOut.model_validate(lt)

        if "name" in changes and changes["name"] is not None:
            await AdminService._ensure_leave_type_name_free(
                db, changes["name"], exclude_id=leave_type_id,
            )

        old_values = {k: getattr(lt, k) for k in changes}
        for field, value in changes.items():
            if value is None and field != "description":
                continue
            setattr(lt, field, value)
        lt.updated_at = _utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=lt.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return LeaveTypeOut.model_validate(lt)

    @staticmethod
    async def deactivate_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeOut:
        """Soft-delete: the type stays for history but admits no new requests."""
        lt = await AdminService._load_leave_type(db, leave_type_id)
        if lt.is_active:
            lt.is_active = False
            lt.updated_at = _utcnow()
            await db.flush()
            await create_audit_entry(
                db,
                action="deactivate",
                entity_type="leave_type",
                entity_id=lt.id,
                actor_id=actor_id,
                old_values={"is_active": True},
                new_values={"is_active": False},
            )
            logger.info("Leave type %r deactivated", lt.name)
        return LeaveTypeOut.model_validate(lt)

    @staticmethod
    async def delete_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Physically remove an unused leave type.

        Raises:
            ConflictError: any leave request references the type.
        """
        lt = await AdminService._load_leave_type(db, leave_type_id)
        referenced = (
            await db.execute(
                select(func.count())
                .select_from(LeaveRequest)
                .where(LeaveRequest.leave_type_id == leave_type_id)
            )
        ).scalar() or 0
        if referenced:
            raise ConflictError(
                "leave_type_id",
                leave_type_id,
                detail=(
                    f"Leave type '{lt.name}' is referenced by {referenced} "
                    "leave request(s); deactivate it instead."
                ),
            )

        await create_audit_entry(
            db,
            action="delete",
            entity_type="leave_type",
            entity_id=lt.id,
            actor_id=actor_id,
            old_values={"name": lt.name},
        )
        await db.delete(lt)
        await db.flush()
        logger.info("Leave type %r deleted", lt.name)

    # ═════════════════════════════════════════════════════════════════
    # Employees
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _load_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        emp = await db.get(Employee, employee_id)
        if emp is None:
            raise NotFoundException("Employee", str(employee_id))
        return emp

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        manager_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse[EmployeeOut]:
        """Paginated employee list, optionally filtered by manager / active flag."""
        query = select(Employee).order_by(Employee.employee_code)
        if manager_id is not None:
            query = query.where(Employee.manager_id == manager_id)
        if is_active is not None:
            query = query.where(Employee.is_active.is_(is_active))

        rows, meta = await paginate(db, query, pagination, model=Employee)
        return PaginatedResponse[EmployeeOut](
            data=[EmployeeOut.model_validate(e) for e in rows],
            meta=meta,
        )

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeOut:
        return EmployeeOut.model_validate(
            await AdminService._load_employee(db, employee_id)
        )

    @staticmethod
    async def provision_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeOut:
        """Create an employee. Code and email must be unique."""
        existing = (
            await db.execute(
                select(Employee.employee_code, Employee.email).where(
                    (Employee.employee_code == data.employee_code)
                    | (func.lower(Employee.email) == data.email.lower())
                )
            )
        ).first()
        if existing is not None:
            if existing.employee_code == data.employee_code:
                raise ConflictError("employee_code", data.employee_code)
            raise ConflictError("email", data.email)

        if data.manager_id is not None:
            await AdminService._load_employee(db, data.manager_id)

        employee = Employee(**data.model_dump())
        db.add(employee)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            err = str(exc.orig)
            if "employee_code" in err:
                raise ConflictError("employee_code", data.employee_code)
            if "email" in err:
                raise ConflictError("email", data.email)
            raise

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Employee %s provisioned (%s)", employee.employee_code, employee.id)
        return EmployeeOut.model_validate(employee)

    @staticmethod
    async def reassign_manager(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager_id: Optional[uuid.UUID],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeOut:
        """Set or clear an employee's manager.

        The reporting line must stay acyclic: an employee can neither
        manage themselves nor report to someone in their own chain.
        """
        employee = await AdminService._load_employee(db, employee_id)

        if manager_id is not None:
            if manager_id == employee_id:
                raise ValidationException(
                    {"manager_id": ["An employee cannot be their own manager."]}
                )
            # Walk up from the new manager; reaching the employee means a cycle
            cursor: Optional[uuid.UUID] = manager_id
            seen: set[uuid.UUID] = set()
            while cursor is not None and cursor not in seen:
                seen.add(cursor)
                node = await AdminService._load_employee(db, cursor)
                if node.manager_id == employee_id:
                    raise ValidationException(
                        {"manager_id": ["Assignment would create a reporting cycle."]}
                    )
                cursor = node.manager_id

        old_manager = employee.manager_id
        employee.manager_id = manager_id
        employee.updated_at = _utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action="reassign_manager",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"manager_id": str(old_manager) if old_manager else None},
            new_values={"manager_id": str(manager_id) if manager_id else None},
        )
        return EmployeeOut.model_validate(employee)

    # ═════════════════════════════════════════════════════════════════
    # Holidays
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def list_holidays(db: AsyncSession, year: int) -> list[HolidayOut]:
        result = await db.execute(
            select(Holiday)
            .where(
                Holiday.holiday_date >= date(year, 1, 1),
                Holiday.holiday_date <= date(year, 12, 31),
            )
            .order_by(Holiday.holiday_date)
        )
        return [HolidayOut.model_validate(h) for h in result.scalars().all()]

    @staticmethod
    async def add_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        """Add a public holiday; one per date.

        Requests already submitted keep their frozen day counts.
        """
        clash = await db.execute(
            select(Holiday.id).where(Holiday.holiday_date == data.holiday_date)
        )
        if clash.first() is not None:
            raise ConflictError("holiday_date", data.holiday_date.isoformat())

        holiday = Holiday(holiday_date=data.holiday_date, name=data.name)
        db.add(holiday)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def remove_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))

        await create_audit_entry(
            db,
            action="delete",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            old_values={
                "holiday_date": holiday.holiday_date.isoformat(),
                "name": holiday.name,
            },
        )
        await db.delete(holiday)
        await db.flush()

    # ═════════════════════════════════════════════════════════════════
    # Leave requests (organisation-wide)
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def list_leave_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse[LeaveRequestListItem]:
        """Every leave request, newest first.

        ``search`` matches employee name, department or leave type name
        (case-insensitive substring).
        """
        query = (
            select(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.applied_on.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if department:
            query = query.where(func.lower(Employee.department) == department.lower())
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Employee.first_name.ilike(pattern),
                    Employee.last_name.ilike(pattern),
                    Employee.department.ilike(pattern),
                    LeaveType.name.ilike(pattern),
                )
            )

        rows, meta = await paginate(db, query, pagination, model=LeaveRequest)
        items = [
            LeaveRequestListItem(
                **request_record(row).model_dump(exclude={"version"}),
                employee_name=row.employee.full_name,
                department=row.employee.department,
                leave_type_name=row.leave_type.name,
            )
            for row in rows
        ]
        return PaginatedResponse[LeaveRequestListItem](data=items, meta=meta)

    # ═════════════════════════════════════════════════════════════════
    # Dashboard
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_dashboard(db: AsyncSession, today: date) -> AdminDashboardOut:
        """Request counts by status, people on leave today, approved leave per department."""
        employees_q = select(func.count(Employee.id)).where(Employee.is_active.is_(True))
        total_employees = (await db.execute(employees_q)).scalar_one()

        status_rows = (
            await db.execute(
                select(LeaveRequest.status, func.count(LeaveRequest.id))
                .group_by(LeaveRequest.status)
            )
        ).all()
        by_status = {row[0]: row[1] for row in status_rows}

        on_leave_q = select(func.count(func.distinct(LeaveRequest.employee_id))).where(
            LeaveRequest.status == LeaveStatus.approved,
            LeaveRequest.start_date <= today,
            LeaveRequest.end_date >= today,
        )
        on_leave_today = (await db.execute(on_leave_q)).scalar_one()

        # Every department with at least one employee, zero rows included
        dept_rows = (
            await db.execute(
                select(
                    Employee.department.label("department"),
                    func.count(LeaveRequest.id).label("approved_requests"),
                    func.coalesce(func.sum(LeaveRequest.chargeable_days), 0).label("approved_days"),
                )
                .select_from(Employee)
                .outerjoin(
                    LeaveRequest,
                    and_(
                        LeaveRequest.employee_id == Employee.id,
                        LeaveRequest.status == LeaveStatus.approved,
                    ),
                )
                .where(Employee.department.is_not(None))
                .group_by(Employee.department)
                .order_by(Employee.department)
            )
        ).all()

        return AdminDashboardOut(
            as_of=today,
            total_employees=total_employees or 0,
            pending_requests=by_status.get(LeaveStatus.pending, 0),
            approved_requests=by_status.get(LeaveStatus.approved, 0),
            rejected_requests=by_status.get(LeaveStatus.rejected, 0),
            cancelled_requests=by_status.get(LeaveStatus.cancelled, 0),
            on_leave_today=on_leave_today or 0,
            departments=[
                DepartmentLeaveItem(
                    department=row.department,
                    approved_requests=row.approved_requests,
                    approved_days=row.approved_days,
                )
                for row in dept_rows
            ],
        )

    # ═════════════════════════════════════════════════════════════════
    # Audit trail
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_audit_history(
        db: AsyncSession,
        entity_type: str,
        entity_id: uuid.UUID,
    ) -> list[AuditEntryOut]:
        """Audit entries of one entity, oldest first, with actor names resolved."""
        entries = await get_audit_entries(db, entity_type, entity_id)
        actor_ids = {e.actor_id for e in entries if e.actor_id is not None}
        names: dict[uuid.UUID, str] = {}
        if actor_ids:
            result = await db.execute(select(Employee).where(Employee.id.in_(actor_ids)))
            names = {emp.id: emp.full_name for emp in result.scalars().all()}

        return [
            AuditEntryOut(
                id=e.id,
                action=e.action,
                entity_type=e.entity_type,
                entity_id=e.entity_id,
                actor_id=e.actor_id,
                actor_name=names.get(e.actor_id) if e.actor_id else None,
                old_values=e.old_values,
                new_values=e.new_values,
                created_at=e.created_at,
            )
            for e in entries
        ]
