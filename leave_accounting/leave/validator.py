"""Admission rules for leave submissions.

Every rule that decides whether a requested range may become a ``pending``
request lives here. Rules run in a fixed order and the first failure wins:

  1. not_found                  leave type unknown or inactive
  2. invalid_range              end before start
  3. insufficient_notice        not emergency and start too close to today
  4. zero_chargeable_days       only weekends / holidays in the range
  5. exceeds_consecutive_limit  more chargeable days than the type allows
  6. overlapping_request        range meets a pending / approved request
  7. insufficient_balance       more chargeable days than remain this year

A failing submission is an ordinary outcome, so ``validate`` returns a
``Rejected`` value instead of raising.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from leave_accounting.common.constants import (
    DATE_FORMAT,
    DEFAULT_LEAD_TIME_DAYS,
    LIVE_STATUSES,
    RejectionReason,
)
from leave_accounting.leave.calendar import chargeable_day_count
from leave_accounting.leave.ledger import summarize_balance
from leave_accounting.leave.policy import PolicyCatalog
from leave_accounting.leave.schemas import LeaveRequestOut


class LeaveCandidate(BaseModel):
    """A submission that has not been admitted yet."""

    model_config = ConfigDict(frozen=True)

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: str = ""
    is_emergency: bool = False


class Admitted(BaseModel):
    model_config = ConfigDict(frozen=True)

    chargeable_days: int = Field(..., ge=1)


class Rejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    message: str


ValidationOutcome = Union[Admitted, Rejected]


class RequestValidator:
    """Evaluates a candidate against policy, calendar and the ledger."""

    def __init__(
        self,
        lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
        exclude_weekends: bool = True,
    ) -> None:
        self.lead_time_days = lead_time_days
        self.exclude_weekends = exclude_weekends

    def validate(
        self,
        candidate: LeaveCandidate,
        existing: Iterable[LeaveRequestOut],
        policy: PolicyCatalog,
        *,
        today: date,
        holidays: Iterable[date] = frozenset(),
    ) -> ValidationOutcome:
        """Return ``Admitted`` with the frozen day count, or the first ``Rejected``.

        ``existing`` is the employee's request history in any status;
        only live (pending / approved) entries affect overlap and balance.
        """
        existing = [r for r in existing if r.employee_id == candidate.employee_id]
        start, end = candidate.start_date, candidate.end_date

        if not policy.is_active(candidate.leave_type_id):
            return Rejected(
                reason=RejectionReason.not_found,
                message="Leave type does not exist or is no longer active.",
            )
        leave_type = policy.get(candidate.leave_type_id)

        if end < start:
            return Rejected(
                reason=RejectionReason.invalid_range,
                message="End date cannot be before start date.",
            )

        if not candidate.is_emergency and (start - today).days < self.lead_time_days:
            return Rejected(
                reason=RejectionReason.insufficient_notice,
                message=(
                    f"Leave must be applied at least {self.lead_time_days} "
                    "day(s) in advance unless marked as emergency."
                ),
            )

        chargeable = chargeable_day_count(start, end, self.exclude_weekends, holidays)
        if chargeable == 0:
            return Rejected(
                reason=RejectionReason.zero_chargeable_days,
                message="The selected dates contain no working days.",
            )

        if chargeable > leave_type.max_consecutive_days:
            return Rejected(
                reason=RejectionReason.exceeds_consecutive_limit,
                message=(
                    f"{leave_type.name} allows at most "
                    f"{leave_type.max_consecutive_days} consecutive day(s); "
                    f"requested {chargeable}."
                ),
            )

        for req in existing:
            if req.status in LIVE_STATUSES and req.overlaps(start, end):
                return Rejected(
                    reason=RejectionReason.overlapping_request,
                    message=(
                        "Dates overlap an existing "
                        f"{req.status.value} request "
                        f"({req.start_date.strftime(DATE_FORMAT)} to "
                        f"{req.end_date.strftime(DATE_FORMAT)})."
                    ),
                )

        balance = summarize_balance(
            leave_type, existing, employee_id=candidate.employee_id, year=start.year,
        )
        if chargeable > balance.remaining:
            return Rejected(
                reason=RejectionReason.insufficient_balance,
                message=(
                    f"Insufficient {leave_type.name} balance. "
                    f"Remaining: {balance.remaining}, Requested: {chargeable}"
                ),
            )

        return Admitted(chargeable_days=chargeable)
