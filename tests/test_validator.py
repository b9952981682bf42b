"""Request validator tests: rule order and each rejection reason, no DB.

Today is Saturday 2025-03-01 throughout; lead time is 2 days.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from leave_accounting.common.constants import LeaveStatus, RejectionReason
from leave_accounting.leave.policy import PolicyCatalog
from leave_accounting.leave.schemas import DecisionMeta, LeaveRequestOut, LeaveTypeOut
from leave_accounting.leave.validator import (
    Admitted,
    LeaveCandidate,
    Rejected,
    RequestValidator,
)

TODAY = date(2025, 3, 1)
EMP = uuid.uuid4()


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def _leave_type(
    *,
    name: str = "Casual",
    days: int = 12,
    max_consecutive: int = 5,
    is_active: bool = True,
) -> LeaveTypeOut:
    return LeaveTypeOut(
        id=uuid.uuid4(),
        name=name,
        default_days_per_year=days,
        max_consecutive_days=max_consecutive,
        is_active=is_active,
    )


def _request(
    leave_type: LeaveTypeOut,
    start: date,
    end: date,
    days: int,
    *,
    status: LeaveStatus = LeaveStatus.pending,
    employee_id: uuid.UUID = EMP,
) -> LeaveRequestOut:
    decision: Optional[DecisionMeta] = None
    if status != LeaveStatus.pending:
        decision = DecisionMeta(
            decided_by=uuid.uuid4(), decided_at=datetime.now(timezone.utc),
        )
    return LeaveRequestOut(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        start_date=start,
        end_date=end,
        status=status,
        chargeable_days=days,
        applied_on=datetime(2025, 2, 1, tzinfo=timezone.utc),
        decision=decision,
    )


def _candidate(
    leave_type_id: uuid.UUID,
    start: date,
    end: date,
    *,
    is_emergency: bool = False,
) -> LeaveCandidate:
    return LeaveCandidate(
        employee_id=EMP,
        leave_type_id=leave_type_id,
        start_date=start,
        end_date=end,
        is_emergency=is_emergency,
    )


def _validate(candidate, existing=(), types=(), holidays=frozenset(), **kwargs):
    validator = RequestValidator(**kwargs)
    return validator.validate(
        candidate, list(existing), PolicyCatalog(types), today=TODAY, holidays=holidays,
    )


# ═════════════════════════════════════════════════════════════════════
# Admission
# ═════════════════════════════════════════════════════════════════════


class TestAdmitted:

    def test_three_weekdays_admitted(self):
        """Mon–Wed with no history → Admitted(3)."""
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), types=[lt])
        assert outcome == Admitted(chargeable_days=3)

    def test_holiday_reduces_chargeable_days(self):
        lt = _leave_type()
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)),
            types=[lt],
            holidays={date(2025, 3, 11)},
        )
        assert outcome == Admitted(chargeable_days=2)

    def test_weekends_counted_when_not_excluded(self):
        """Fri–Mon with weekend exclusion off → 4."""
        lt = _leave_type()
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 7), date(2025, 3, 10)),
            types=[lt],
            exclude_weekends=False,
        )
        assert outcome == Admitted(chargeable_days=4)

    def test_exactly_lead_time_is_enough(self):
        """Start two days from today satisfies a two-day lead time."""
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 3), date(2025, 3, 3)), types=[lt])
        assert isinstance(outcome, Admitted)

    def test_emergency_skips_notice(self):
        """Emergency leave starting tomorrow bypasses the lead time."""
        lt = _leave_type()
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 2), date(2025, 3, 3), is_emergency=True),
            types=[lt],
        )
        assert outcome == Admitted(chargeable_days=1)

    def test_exactly_exhausts_balance(self):
        lt = _leave_type(days=3)
        outcome = _validate(_candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), types=[lt])
        assert outcome == Admitted(chargeable_days=3)

    def test_terminal_requests_do_not_block(self):
        """Rejected and cancelled requests hold neither dates nor balance."""
        lt = _leave_type(days=3)
        existing = [
            _request(lt, date(2025, 3, 10), date(2025, 3, 12), 3, status=LeaveStatus.rejected),
            _request(lt, date(2025, 3, 10), date(2025, 3, 12), 3, status=LeaveStatus.cancelled),
        ]
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), existing, types=[lt],
        )
        assert outcome == Admitted(chargeable_days=3)

    def test_other_employees_requests_ignored(self):
        lt = _leave_type()
        other = _request(
            lt, date(2025, 3, 10), date(2025, 3, 12), 3, employee_id=uuid.uuid4(),
        )
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), [other], types=[lt],
        )
        assert isinstance(outcome, Admitted)


# ═════════════════════════════════════════════════════════════════════
# Rejections, one per rule
# ═════════════════════════════════════════════════════════════════════


class TestRejections:

    def test_unknown_leave_type(self):
        outcome = _validate(_candidate(uuid.uuid4(), date(2025, 3, 10), date(2025, 3, 12)))
        assert isinstance(outcome, Rejected)
        assert outcome.reason == RejectionReason.not_found

    def test_inactive_leave_type(self):
        lt = _leave_type(is_active=False)
        outcome = _validate(_candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), types=[lt])
        assert outcome.reason == RejectionReason.not_found

    def test_invalid_range(self):
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 12), date(2025, 3, 10)), types=[lt])
        assert outcome.reason == RejectionReason.invalid_range

    def test_insufficient_notice(self):
        """Start tomorrow, not emergency, lead time 2 → insufficient_notice."""
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 2), date(2025, 3, 4)), types=[lt])
        assert outcome.reason == RejectionReason.insufficient_notice
        assert "2 day(s)" in outcome.message

    def test_start_in_the_past(self):
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 2, 24), date(2025, 2, 25)), types=[lt])
        assert outcome.reason == RejectionReason.insufficient_notice

    def test_configurable_lead_time(self):
        lt = _leave_type()
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 5), date(2025, 3, 5)),
            types=[lt],
            lead_time_days=7,
        )
        assert outcome.reason == RejectionReason.insufficient_notice

    def test_zero_chargeable_days(self):
        """A weekend-only range consumes nothing and is refused."""
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 8), date(2025, 3, 9)), types=[lt])
        assert outcome.reason == RejectionReason.zero_chargeable_days

    def test_exceeds_consecutive_limit(self):
        """Six weekdays against a five-day limit."""
        lt = _leave_type(max_consecutive=5)
        outcome = _validate(_candidate(lt.id, date(2025, 3, 10), date(2025, 3, 17)), types=[lt])
        assert outcome.reason == RejectionReason.exceeds_consecutive_limit
        assert "requested 6" in outcome.message

    def test_overlapping_pending_request(self):
        lt = _leave_type()
        existing = [_request(lt, date(2025, 3, 10), date(2025, 3, 12), 3)]
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 11), date(2025, 3, 13)), existing, types=[lt],
        )
        assert outcome.reason == RejectionReason.overlapping_request

    def test_overlapping_approved_request_of_other_type(self):
        """Overlap is per employee, regardless of leave type."""
        casual = _leave_type()
        sick = _leave_type(name="Sick")
        existing = [
            _request(casual, date(2025, 3, 10), date(2025, 3, 12), 3, status=LeaveStatus.approved),
        ]
        outcome = _validate(
            _candidate(sick.id, date(2025, 3, 12), date(2025, 3, 12)),
            existing,
            types=[casual, sick],
        )
        assert outcome.reason == RejectionReason.overlapping_request

    def test_insufficient_balance_counts_pending_hold(self):
        """12 total − 5 approved − 5 pending = 2 remaining < 3 requested."""
        lt = _leave_type(days=12)
        existing = [
            _request(lt, date(2025, 1, 6), date(2025, 1, 10), 5, status=LeaveStatus.approved),
            _request(lt, date(2025, 2, 3), date(2025, 2, 7), 5),
        ]
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), existing, types=[lt],
        )
        assert outcome.reason == RejectionReason.insufficient_balance
        assert "Remaining: 2" in outcome.message

    def test_previous_year_usage_not_counted(self):
        lt = _leave_type(days=5)
        existing = [
            _request(lt, date(2024, 6, 3), date(2024, 6, 7), 5, status=LeaveStatus.approved),
        ]
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 10), date(2025, 3, 14)), existing, types=[lt],
        )
        assert outcome == Admitted(chargeable_days=5)


class TestRuleOrder:

    def test_inactive_type_wins_over_bad_range(self):
        lt = _leave_type(is_active=False)
        outcome = _validate(_candidate(lt.id, date(2025, 3, 12), date(2025, 3, 10)), types=[lt])
        assert outcome.reason == RejectionReason.not_found

    def test_bad_range_wins_over_notice(self):
        lt = _leave_type()
        outcome = _validate(_candidate(lt.id, date(2025, 3, 2), date(2025, 2, 28)), types=[lt])
        assert outcome.reason == RejectionReason.invalid_range

    def test_overlap_wins_over_balance(self):
        lt = _leave_type(days=3)
        existing = [_request(lt, date(2025, 3, 10), date(2025, 3, 12), 3)]
        outcome = _validate(
            _candidate(lt.id, date(2025, 3, 12), date(2025, 3, 14)), existing, types=[lt],
        )
        assert outcome.reason == RejectionReason.overlapping_request

    def test_limit_wins_over_balance(self):
        lt = _leave_type(days=2, max_consecutive=2)
        outcome = _validate(_candidate(lt.id, date(2025, 3, 10), date(2025, 3, 12)), types=[lt])
        assert outcome.reason == RejectionReason.exceeds_consecutive_limit
