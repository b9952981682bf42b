"""Core HR module: Employee model and schemas."""

from leave_accounting.core_hr.models import Employee

__all__ = ["Employee"]
