"""Balance ledger: derives entitlement, usage and holds from the request set.

Nothing here is cached or stored: every balance is recomputed from the
authoritative list of requests on each call, so there is no running total
that can drift from the ledger.

Rules:
  - total     = leave type ``default_days_per_year`` (no partial-year proration)
  - used      = chargeable days of approved requests starting in the year
  - pending   = chargeable days of pending requests starting in the year
  - remaining = max(0, total - used - pending)
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from leave_accounting.common.constants import LeaveStatus
from leave_accounting.leave.policy import PolicyCatalog
from leave_accounting.leave.repository import LeaveRepository
from leave_accounting.leave.schemas import BalanceOut, LeaveRequestOut, LeaveTypeBrief, LeaveTypeOut


def summarize_balance(
    leave_type: LeaveTypeOut,
    requests: Iterable[LeaveRequestOut],
    *,
    employee_id: uuid.UUID,
    year: int,
) -> BalanceOut:
    """Pure balance computation over an in-memory request set.

    Requests of other employees, other leave types or starting in other
    years are ignored, so callers may pass an unfiltered list.
    """
    used = 0
    pending = 0
    for req in requests:
        if (
            req.employee_id != employee_id
            or req.leave_type_id != leave_type.id
            or req.start_date.year != year
        ):
            continue
        if req.status == LeaveStatus.approved:
            used += req.chargeable_days
        elif req.status == LeaveStatus.pending:
            pending += req.chargeable_days

    total = leave_type.default_days_per_year
    return BalanceOut(
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        year=year,
        total=total,
        used=used,
        pending=pending,
        remaining=max(0, total - used - pending),
        leave_type=LeaveTypeBrief(
            id=leave_type.id, name=leave_type.name, is_paid=leave_type.is_paid,
        ),
    )


class BalanceLedger:
    """Repository-backed balance reads."""

    def __init__(self, repository: LeaveRepository) -> None:
        self._repository = repository

    async def compute_balance(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> BalanceOut:
        """Balance for one leave type.

        Raises:
            NotFoundException: unknown employee or leave type.
        """
        await self._repository.get_employee(employee_id)
        leave_type = await self._repository.get_leave_type(leave_type_id)
        requests = await self._repository.get_requests_for_employee(employee_id)
        return summarize_balance(
            leave_type, requests, employee_id=employee_id, year=year,
        )

    async def compute_balances(
        self,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[BalanceOut]:
        """Balances for every active leave type, ordered by name."""
        await self._repository.get_employee(employee_id)
        catalog = PolicyCatalog(await self._repository.list_leave_types(is_active=True))
        requests = await self._repository.get_requests_for_employee(employee_id)
        return [
            summarize_balance(lt, requests, employee_id=employee_id, year=year)
            for lt in catalog.active()
        ]
