"""Leave accounting engine: submission, decisions and balance reads.

The engine holds no state between calls: each operation reads what it
needs through the repository, applies the validator / ledger rules and
performs at most one ledger write.

Lifecycle:
    pending --approve--> approved
    pending --reject---> rejected
    pending --cancel---> cancelled

Anything else raises ``InvalidTransition``. Failures raised by the
repository always surface as ``AppException`` subclasses.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timezone
from typing import Optional, TypeVar, Union

from leave_accounting.common.constants import (
    ALLOWED_TRANSITIONS,
    DEFAULT_LEAD_TIME_DAYS,
    TERMINAL_STATUSES,
    DecisionOutcome,
    LeaveStatus,
    RejectionReason,
)
from leave_accounting.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidTransition,
    MissingRemarks,
    NotFoundException,
    RepositoryError,
    TransientError,
)
from leave_accounting.core_hr.schemas import EmployeeOut
from leave_accounting.leave.calendar import years_spanned
from leave_accounting.leave.ledger import BalanceLedger
from leave_accounting.leave.policy import PolicyCatalog
from leave_accounting.leave.repository import LeaveRepository
from leave_accounting.leave.schemas import (
    BalanceOut,
    DecisionMeta,
    EmployeeLeaveSummaryOut,
    EmployeeRequestCount,
    LeaveRequestOut,
    LeaveTypeCount,
    ManagerDashboardOut,
    ManagerReportOut,
)
from leave_accounting.leave.validator import LeaveCandidate, Rejected, RequestValidator

T = TypeVar("T")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveAccountingEngine:
    """Stateless facade over the validator, the ledger and a repository."""

    def __init__(
        self,
        repository: LeaveRepository,
        *,
        lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
        exclude_weekends: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        self.repository = repository
        self.validator = RequestValidator(lead_time_days, exclude_weekends)
        self.ledger = BalanceLedger(repository)
        self._clock = clock or _utcnow

    # ── Internal helpers ────────────────────────────────────────────

    @staticmethod
    async def _call(awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except AppException:
            raise
        except asyncio.TimeoutError as exc:
            raise TransientError("Leave store did not respond in time.") from exc
        except Exception as exc:
            raise RepositoryError(
                f"Unexpected repository failure: {exc.__class__.__name__}: {exc}"
            ) from exc

    @staticmethod
    def _check_transition(current: LeaveStatus, target: LeaveStatus) -> None:
        if current in TERMINAL_STATUSES or target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(current, target)

    async def _check_decider(self, request: LeaveRequestOut, decider_id: uuid.UUID) -> None:
        decider = await self._call(self.repository.get_employee(decider_id))
        if not decider.is_active:
            raise NotFoundException("Employee", str(decider_id))
        if decider_id == request.employee_id:
            raise ForbiddenException("You cannot decide on your own leave request.")
        requester = await self._call(self.repository.get_employee(request.employee_id))
        if requester.manager_id != decider_id:
            raise ForbiddenException(
                "Only the requester's reporting manager can decide on this leave request."
            )

    async def _transition(
        self,
        request_id: uuid.UUID,
        target: LeaveStatus,
        decision: DecisionMeta,
    ) -> LeaveRequestOut:
        """Conditional write from ``pending``; a lost race reports the winner's status."""
        try:
            return await self._call(
                self.repository.update_request_status(
                    request_id, LeaveStatus.pending, target, decision,
                )
            )
        except ConflictError:
            latest = await self._call(self.repository.get_request(request_id))
            raise InvalidTransition(latest.status, target) from None

    # ── Submission ──────────────────────────────────────────────────

    async def submit(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: str = "",
        is_emergency: bool = False,
    ) -> Union[LeaveRequestOut, Rejected]:
        """Validate and record a leave request.

        Returns the new ``pending`` request, or a ``Rejected`` outcome
        naming the first admission rule that failed.

        Raises:
            NotFoundException: unknown or inactive employee.
            TransientError / RepositoryError: the store failed.
        """
        candidate = LeaveCandidate(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason or "",
            is_emergency=is_emergency,
        )

        employee = await self._call(self.repository.get_employee(employee_id))
        if not employee.is_active:
            raise NotFoundException("Employee", str(employee_id))

        existing = await self._call(
            self.repository.get_requests_for_employee(employee_id, for_update=True)
        )

        try:
            leave_type = await self._call(self.repository.get_leave_type(leave_type_id))
        except NotFoundException:
            policy = PolicyCatalog()
        else:
            policy = PolicyCatalog([leave_type])

        holidays: set[date] = set()
        for year in years_spanned(start_date, end_date):
            holidays |= await self._call(self.repository.get_holiday_set(year))

        now = self._clock()
        outcome = self.validator.validate(
            candidate, existing, policy, today=now.date(), holidays=holidays,
        )
        if isinstance(outcome, Rejected):
            return outcome

        record = LeaveRequestOut(
            id=uuid.uuid4(),
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            reason=candidate.reason or None,
            is_emergency=is_emergency,
            status=LeaveStatus.pending,
            chargeable_days=outcome.chargeable_days,
            applied_on=now,
        )
        try:
            return await self._call(self.repository.insert_request(record))
        except ConflictError:
            return Rejected(
                reason=RejectionReason.overlapping_request,
                message="Dates overlap a request that was recorded concurrently.",
            )

    # ── Decisions ───────────────────────────────────────────────────

    async def decide(
        self,
        request_id: uuid.UUID,
        decider_id: uuid.UUID,
        outcome: DecisionOutcome,
        remarks: str = "",
    ) -> LeaveRequestOut:
        """Approve or reject a pending request.

        Only the requester's current manager may decide, and never on
        their own request.

        Raises:
            MissingRemarks: rejecting without remarks.
            NotFoundException: unknown request, or unknown / inactive decider.
            InvalidTransition: the request is not (or no longer) pending.
            ForbiddenException: the decider does not manage the requester.
        """
        outcome = DecisionOutcome(outcome)
        remarks = (remarks or "").strip()
        if outcome == DecisionOutcome.rejected and not remarks:
            raise MissingRemarks()

        target = LeaveStatus(outcome.value)
        current = await self._call(self.repository.get_request(request_id))
        self._check_transition(current.status, target)
        await self._check_decider(current, decider_id)

        decision = DecisionMeta(
            decided_by=decider_id,
            decided_at=self._clock(),
            remarks=remarks or None,
        )
        return await self._transition(request_id, target, decision)

    async def cancel(
        self,
        request_id: uuid.UUID,
        requester_id: uuid.UUID,
        reason: str = "",
    ) -> LeaveRequestOut:
        """Withdraw a pending request. Only its owner may do so.

        Raises:
            NotFoundException: unknown request.
            ForbiddenException: requester does not own the request.
            InvalidTransition: the request is not (or no longer) pending.
        """
        current = await self._call(self.repository.get_request(request_id))
        if current.employee_id != requester_id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        self._check_transition(current.status, LeaveStatus.cancelled)

        decision = DecisionMeta(
            decided_by=requester_id,
            decided_at=self._clock(),
            remarks=(reason or "").strip() or None,
        )
        return await self._transition(request_id, LeaveStatus.cancelled, decision)

    # ── Balances ────────────────────────────────────────────────────

    async def get_balance(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> BalanceOut:
        return await self._call(
            self.ledger.compute_balance(employee_id, leave_type_id, year)
        )

    recompute_balance = get_balance

    async def get_balances(self, employee_id: uuid.UUID, year: int) -> list[BalanceOut]:
        return await self._call(self.ledger.compute_balances(employee_id, year))

    # ── Queries ─────────────────────────────────────────────────────

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestOut:
        return await self._call(self.repository.get_request(request_id))

    async def list_requests(self, employee_id: uuid.UUID) -> list[LeaveRequestOut]:
        """Request history of one employee, newest first."""
        await self._call(self.repository.get_employee(employee_id))
        requests = await self._call(self.repository.get_requests_for_employee(employee_id))
        return sorted(requests, key=lambda r: r.applied_on, reverse=True)

    async def _team_requests(
        self,
        manager_id: uuid.UUID,
    ) -> list[tuple[EmployeeOut, list[LeaveRequestOut]]]:
        await self._call(self.repository.get_employee(manager_id))
        reports = await self._call(self.repository.list_direct_reports(manager_id))
        team = []
        for report in reports:
            requests = await self._call(self.repository.get_requests_for_employee(report.id))
            team.append((report, requests))
        return team

    async def list_pending_for_manager(self, manager_id: uuid.UUID) -> list[LeaveRequestOut]:
        """Pending requests of the manager's direct reports, oldest first."""
        pending = [
            r
            for _, requests in await self._team_requests(manager_id)
            for r in requests
            if r.status == LeaveStatus.pending
        ]
        return sorted(pending, key=lambda r: r.applied_on)

    async def list_requests_for_manager(
        self,
        manager_id: uuid.UUID,
        status: Optional[LeaveStatus] = None,
    ) -> list[LeaveRequestOut]:
        """Requests of the manager's direct reports in any (or one) status, newest first."""
        team = [
            r
            for _, requests in await self._team_requests(manager_id)
            for r in requests
            if status is None or r.status == status
        ]
        return sorted(team, key=lambda r: r.applied_on, reverse=True)

    async def employee_summary(
        self,
        employee_id: uuid.UUID,
        year: int,
    ) -> EmployeeLeaveSummaryOut:
        """Days taken and open requests starting in ``year``, plus balances."""
        balances = await self.get_balances(employee_id, year)
        requests = await self._call(self.repository.get_requests_for_employee(employee_id))
        in_year = [r for r in requests if r.start_date.year == year]
        return EmployeeLeaveSummaryOut(
            employee_id=employee_id,
            year=year,
            days_taken=sum(
                r.chargeable_days for r in in_year if r.status == LeaveStatus.approved
            ),
            pending_requests=sum(1 for r in in_year if r.status == LeaveStatus.pending),
            balances=balances,
        )

    async def manager_report(
        self,
        manager_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> ManagerReportOut:
        """Request statistics over direct reports; ``year`` filters by start date."""
        team = await self._team_requests(manager_id)
        leave_types = await self._call(self.repository.list_leave_types(is_active=None))
        type_names = {lt.id: lt.name for lt in leave_types}

        by_status: Counter[LeaveStatus] = Counter()
        by_type: Counter[uuid.UUID] = Counter()
        per_employee: list[EmployeeRequestCount] = []
        for report, requests in team:
            if year is not None:
                requests = [r for r in requests if r.start_date.year == year]
            by_status.update(r.status for r in requests)
            by_type.update(r.leave_type_id for r in requests)
            per_employee.append(
                EmployeeRequestCount(
                    employee_id=report.id,
                    employee_name=report.full_name,
                    request_count=len(requests),
                )
            )

        distribution = [
            LeaveTypeCount(
                leave_type_id=lt_id,
                leave_type_name=type_names.get(lt_id, "Unknown"),
                count=count,
            )
            for lt_id, count in by_type.items()
        ]
        distribution.sort(key=lambda c: (-c.count, c.leave_type_name))
        per_employee.sort(key=lambda c: (-c.request_count, c.employee_name))

        return ManagerReportOut(
            manager_id=manager_id,
            year=year,
            total_requests=sum(by_status.values()),
            pending_requests=by_status[LeaveStatus.pending],
            approved_requests=by_status[LeaveStatus.approved],
            rejected_requests=by_status[LeaveStatus.rejected],
            cancelled_requests=by_status[LeaveStatus.cancelled],
            leave_type_distribution=distribution,
            employee_request_counts=per_employee,
        )

    async def manager_dashboard(self, manager_id: uuid.UUID) -> ManagerDashboardOut:
        """Today's team snapshot plus the manager's own request counts.

        "Today" and "this month" come from the engine clock; approvals
        this month are counted by the month the request was applied in.
        """
        today = self._clock().date()
        team = await self._team_requests(manager_id)
        own = await self._call(self.repository.get_requests_for_employee(manager_id))

        on_leave = 0
        pending = 0
        approved_this_month = 0
        for _, requests in team:
            if any(
                r.status == LeaveStatus.approved and r.overlaps(today, today)
                for r in requests
            ):
                on_leave += 1
            for r in requests:
                if r.status == LeaveStatus.pending:
                    pending += 1
                elif (
                    r.status == LeaveStatus.approved
                    and (r.applied_on.year, r.applied_on.month) == (today.year, today.month)
                ):
                    approved_this_month += 1

        return ManagerDashboardOut(
            manager_id=manager_id,
            as_of=today,
            team_size=len(team),
            on_leave_today=on_leave,
            pending_approvals=pending,
            approved_this_month=approved_this_month,
            my_pending_requests=sum(1 for r in own if r.status == LeaveStatus.pending),
            my_approved_requests=sum(1 for r in own if r.status == LeaveStatus.approved),
        )
