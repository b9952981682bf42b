"""Leave repository: the engine's only view of persisted state.

``LeaveRepository`` is the abstract contract. ``SqlAlchemyLeaveRepository``
implements it on an ``AsyncSession``: rows are mapped to the Pydantic
records in ``leave.schemas``, every call is bounded by a timeout, and each
ledger write is audited inside the caller's transaction.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import uuid
from collections.abc import Awaitable
from datetime import date, datetime, timezone
from typing import Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_accounting.common.audit import create_audit_entry
from leave_accounting.common.constants import LIVE_STATUSES, TERMINAL_STATUSES, LeaveStatus
from leave_accounting.common.exceptions import (
    AppException,
    ConflictError,
    NotFoundException,
    RepositoryError,
    TransientError,
)
from leave_accounting.core_hr.models import Employee
from leave_accounting.core_hr.schemas import EmployeeOut
from leave_accounting.leave.models import Holiday, LeaveRequest, LeaveType
from leave_accounting.leave.schemas import DecisionMeta, LeaveRequestOut, LeaveTypeOut

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0

_AUDIT_ACTIONS = {
    LeaveStatus.approved: "approve",
    LeaveStatus.rejected: "reject",
    LeaveStatus.cancelled: "cancel",
}


class LeaveRepository(abc.ABC):
    """Persistence contract used by the ledger and the engine.

    Lookups raise ``NotFoundException``; writes that lose a race raise
    ``ConflictError``.
    """

    @abc.abstractmethod
    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeOut: ...

    @abc.abstractmethod
    async def get_requests_for_employee(
        self,
        employee_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> list[LeaveRequestOut]:
        """All requests of the employee in any status, newest first.

        ``for_update`` serialises concurrent submissions for the same
        employee until the surrounding transaction ends.
        """

    @abc.abstractmethod
    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestOut: ...

    @abc.abstractmethod
    async def insert_request(self, record: LeaveRequestOut) -> LeaveRequestOut:
        """Persist a new pending request.

        Raises ``ConflictError`` if a live request of the same employee
        now overlaps the range.
        """

    @abc.abstractmethod
    async def update_request_status(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        new_status: LeaveStatus,
        decision: DecisionMeta,
    ) -> LeaveRequestOut:
        """Move a request out of ``expected_status``.

        Raises ``ConflictError`` if the stored status is no longer
        ``expected_status``.
        """

    @abc.abstractmethod
    async def get_leave_type(self, leave_type_id: uuid.UUID) -> LeaveTypeOut: ...

    @abc.abstractmethod
    async def list_leave_types(
        self,
        *,
        is_active: Optional[bool] = True,
    ) -> list[LeaveTypeOut]:
        """Leave types ordered by name; ``is_active=None`` returns all."""

    @abc.abstractmethod
    async def get_holiday_set(self, year: int) -> set[date]: ...

    @abc.abstractmethod
    async def list_direct_reports(self, manager_id: uuid.UUID) -> list[EmployeeOut]: ...


# ── Row → record mapping ────────────────────────────────────────────

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as UTC; some drivers hand them back naive."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def request_record(row: LeaveRequest) -> LeaveRequestOut:
    decision = None
    if row.status in TERMINAL_STATUSES:
        decision = DecisionMeta(
            decided_by=row.decided_by,
            decided_at=_as_utc(row.decided_at),
            remarks=row.decision_remarks,
        )
    return LeaveRequestOut(
        id=row.id,
        employee_id=row.employee_id,
        leave_type_id=row.leave_type_id,
        start_date=row.start_date,
        end_date=row.end_date,
        reason=row.reason,
        is_emergency=row.is_emergency,
        status=row.status,
        chargeable_days=row.chargeable_days,
        applied_on=_as_utc(row.applied_on),
        decision=decision,
        version=row.version,
    )


class SqlAlchemyLeaveRepository(LeaveRepository):
    """``LeaveRepository`` over one async session (one transaction)."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session
        self.timeout = timeout

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except AppException:
            raise
        except asyncio.TimeoutError:
            logger.warning("Repository %s timed out after %.1fs", operation, self.timeout)
            raise TransientError(
                f"Leave store did not answer {operation} within {self.timeout}s."
            ) from None
        except OperationalError as exc:
            logger.warning("Repository %s: database unavailable: %s", operation, exc)
            raise TransientError() from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                logger.warning("Repository %s: connection lost: %s", operation, exc)
                raise TransientError() from exc
            logger.exception("Repository %s failed", operation)
            raise RepositoryError(f"{operation} failed: {exc.__class__.__name__}") from exc
        except SQLAlchemyError as exc:
            logger.exception("Repository %s failed", operation)
            raise RepositoryError(f"{operation} failed: {exc.__class__.__name__}") from exc

    # ── Employees ───────────────────────────────────────────────────

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeOut:
        return await self._bounded("get_employee", self._get_employee(employee_id))

    async def _get_employee(self, employee_id: uuid.UUID) -> EmployeeOut:
        emp = await self.session.get(Employee, employee_id)
        if emp is None:
            raise NotFoundException("Employee", str(employee_id))
        return EmployeeOut.model_validate(emp)

    async def list_direct_reports(self, manager_id: uuid.UUID) -> list[EmployeeOut]:
        return await self._bounded(
            "list_direct_reports", self._list_direct_reports(manager_id),
        )

    async def _list_direct_reports(self, manager_id: uuid.UUID) -> list[EmployeeOut]:
        result = await self.session.execute(
            select(Employee)
            .where(Employee.manager_id == manager_id)
            .order_by(Employee.first_name, Employee.last_name)
        )
        return [EmployeeOut.model_validate(e) for e in result.scalars().all()]

    # ── Requests ────────────────────────────────────────────────────

    async def get_requests_for_employee(
        self,
        employee_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> list[LeaveRequestOut]:
        return await self._bounded(
            "get_requests_for_employee",
            self._get_requests_for_employee(employee_id, for_update),
        )

    async def _get_requests_for_employee(
        self,
        employee_id: uuid.UUID,
        for_update: bool,
    ) -> list[LeaveRequestOut]:
        if for_update:
            # Row lock on the employee, held until commit / rollback
            await self.session.execute(
                select(Employee.id).where(Employee.id == employee_id).with_for_update()
            )
        result = await self.session.execute(
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.applied_on.desc())
        )
        return [request_record(r) for r in result.scalars().all()]

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestOut:
        return await self._bounded("get_request", self._get_request(request_id))

    async def _get_request(self, request_id: uuid.UUID) -> LeaveRequestOut:
        row = await self._load_request(request_id)
        if row is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return request_record(row)

    async def _load_request(self, request_id: uuid.UUID) -> Optional[LeaveRequest]:
        result = await self.session.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def insert_request(self, record: LeaveRequestOut) -> LeaveRequestOut:
        return await self._bounded("insert_request", self._insert_request(record))

    async def _insert_request(self, record: LeaveRequestOut) -> LeaveRequestOut:
        clash = await self.session.execute(
            select(LeaveRequest.id)
            .where(
                LeaveRequest.employee_id == record.employee_id,
                LeaveRequest.status.in_(list(LIVE_STATUSES)),
                LeaveRequest.start_date <= record.end_date,
                LeaveRequest.end_date >= record.start_date,
            )
            .limit(1)
        )
        if clash.scalar_one_or_none() is not None:
            raise ConflictError(
                "dates",
                f"{record.start_date}..{record.end_date}",
                detail="Dates overlap an existing pending or approved request.",
            )

        row = LeaveRequest(
            id=record.id,
            employee_id=record.employee_id,
            leave_type_id=record.leave_type_id,
            start_date=record.start_date,
            end_date=record.end_date,
            reason=record.reason or None,
            is_emergency=record.is_emergency,
            status=LeaveStatus.pending,
            chargeable_days=record.chargeable_days,
            applied_on=record.applied_on,
            version=1,
        )
        self.session.add(row)
        await self.session.flush()

        await create_audit_entry(
            self.session,
            action="submit",
            entity_type="leave_request",
            entity_id=row.id,
            actor_id=record.employee_id,
            new_values={
                "leave_type_id": str(record.leave_type_id),
                "start_date": record.start_date.isoformat(),
                "end_date": record.end_date.isoformat(),
                "chargeable_days": record.chargeable_days,
                "is_emergency": record.is_emergency,
                "status": LeaveStatus.pending.value,
            },
        )
        logger.info(
            "Leave request %s submitted by %s: %s to %s (%d day(s))",
            row.id, record.employee_id, record.start_date, record.end_date,
            record.chargeable_days,
        )
        return request_record(row)

    async def update_request_status(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        new_status: LeaveStatus,
        decision: DecisionMeta,
    ) -> LeaveRequestOut:
        return await self._bounded(
            "update_request_status",
            self._update_request_status(request_id, expected_status, new_status, decision),
        )

    async def _update_request_status(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        new_status: LeaveStatus,
        decision: DecisionMeta,
    ) -> LeaveRequestOut:
        result = await self.session.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == request_id,
                LeaveRequest.status == expected_status,
            )
            .values(
                status=new_status,
                decided_by=decision.decided_by,
                decided_at=decision.decided_at,
                decision_remarks=decision.remarks,
                version=LeaveRequest.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            row = await self._load_request(request_id)
            if row is None:
                raise NotFoundException("LeaveRequest", str(request_id))
            logger.info(
                "Leave request %s is %s, expected %s; %s lost the race",
                request_id, row.status.value, expected_status.value, new_status.value,
            )
            raise ConflictError(
                "status",
                row.status.value,
                detail=(
                    f"Leave request is {row.status.value}, "
                    f"expected {expected_status.value}."
                ),
            )

        row = await self._load_request(request_id)
        await create_audit_entry(
            self.session,
            action=_AUDIT_ACTIONS.get(new_status, new_status.value),
            entity_type="leave_request",
            entity_id=request_id,
            actor_id=decision.decided_by,
            old_values={"status": expected_status.value},
            new_values={"status": new_status.value, "remarks": decision.remarks},
        )
        logger.info(
            "Leave request %s %s by %s", request_id, new_status.value, decision.decided_by,
        )
        return request_record(row)

    # ── Policy & calendar data ──────────────────────────────────────

    async def get_leave_type(self, leave_type_id: uuid.UUID) -> LeaveTypeOut:
        return await self._bounded("get_leave_type", self._get_leave_type(leave_type_id))

    async def _get_leave_type(self, leave_type_id: uuid.UUID) -> LeaveTypeOut:
        lt = await self.session.get(LeaveType, leave_type_id)
        if lt is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return LeaveTypeOut.model_validate(lt)

    async def list_leave_types(
        self,
        *,
        is_active: Optional[bool] = True,
    ) -> list[LeaveTypeOut]:
        return await self._bounded("list_leave_types", self._list_leave_types(is_active))

    async def _list_leave_types(self, is_active: Optional[bool]) -> list[LeaveTypeOut]:
        query = select(LeaveType).order_by(LeaveType.name)
        if is_active is not None:
            query = query.where(LeaveType.is_active == is_active)
        result = await self.session.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    async def get_holiday_set(self, year: int) -> set[date]:
        return await self._bounded("get_holiday_set", self._get_holiday_set(year))

    async def _get_holiday_set(self, year: int) -> set[date]:
        result = await self.session.execute(
            select(Holiday.holiday_date).where(
                Holiday.holiday_date >= date(year, 1, 1),
                Holiday.holiday_date <= date(year, 12, 31),
            )
        )
        return set(result.scalars().all())
