"""Common module: shared utilities for leave accounting."""

from leave_accounting.common.audit import AuditTrail, create_audit_entry, get_audit_entries
from leave_accounting.common.constants import (
    ALLOWED_TRANSITIONS,
    DATE_FORMAT,
    DEFAULT_LEAD_TIME_DAYS,
    DEFAULT_PAGE_SIZE,
    LIVE_STATUSES,
    MAX_PAGE_SIZE,
    TERMINAL_STATUSES,
    WEEKEND_DAYS,
    DecisionOutcome,
    LeaveStatus,
    RejectionReason,
)
from leave_accounting.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidRange,
    InvalidTransition,
    LeaveRejectedException,
    MissingRemarks,
    NotFoundException,
    RepositoryError,
    TransientError,
    ValidationException,
    register_exception_handlers,
)
from leave_accounting.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "get_audit_entries",
    # Constants / Enums
    "DecisionOutcome",
    "LeaveStatus",
    "RejectionReason",
    "ALLOWED_TRANSITIONS",
    "LIVE_STATUSES",
    "TERMINAL_STATUSES",
    "WEEKEND_DAYS",
    "DATE_FORMAT",
    "DEFAULT_LEAD_TIME_DAYS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidRange",
    "InvalidTransition",
    "LeaveRejectedException",
    "MissingRemarks",
    "NotFoundException",
    "RepositoryError",
    "TransientError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
