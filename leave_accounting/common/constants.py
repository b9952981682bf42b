"""Enums and constants for leave accounting, matching the PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class DecisionOutcome(str, enum.Enum):
    """What a manager may do with a pending request."""

    approved = "approved"
    rejected = "rejected"


class RejectionReason(str, enum.Enum):
    """Why a submission was not admitted, in rule evaluation order."""

    not_found = "not_found"
    invalid_range = "invalid_range"
    insufficient_notice = "insufficient_notice"
    zero_chargeable_days = "zero_chargeable_days"
    exceeds_consecutive_limit = "exceeds_consecutive_limit"
    overlapping_request = "overlapping_request"
    insufficient_balance = "insufficient_balance"


# Statuses that hold dates and balance
LIVE_STATUSES: frozenset[LeaveStatus] = frozenset(
    {LeaveStatus.pending, LeaveStatus.approved}
)

TERMINAL_STATUSES: frozenset[LeaveStatus] = frozenset(
    {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
)

# from-status -> reachable to-statuses
ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset(
        {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
    ),
    LeaveStatus.approved: frozenset(),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}


# ── Calendar ────────────────────────────────────────────────────────

SATURDAY = 5
SUNDAY = 6
WEEKEND_DAYS: frozenset[int] = frozenset({SATURDAY, SUNDAY})


# ── Misc constants ──────────────────────────────────────────────────

DEFAULT_LEAD_TIME_DAYS = 2
DATE_FORMAT = "%d-%b-%Y"          # 10-Mar-2025
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
