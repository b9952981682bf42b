"""Administration module: leave policy, employee and holiday maintenance."""

from leave_accounting.admin.service import AdminService

__all__ = ["AdminService"]
