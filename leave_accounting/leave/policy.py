"""Read-only view over leave-type definitions."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator

from leave_accounting.common.exceptions import NotFoundException
from leave_accounting.leave.schemas import LeaveTypeOut


class PolicyCatalog:
    """Leave types keyed by id.

    Mutation (create / update / deactivate) belongs to the admin service;
    the engine only ever observes a snapshot through ``get``.
    """

    def __init__(self, leave_types: Iterable[LeaveTypeOut] = ()) -> None:
        self._types: dict[uuid.UUID, LeaveTypeOut] = {lt.id: lt for lt in leave_types}

    def get(self, leave_type_id: uuid.UUID) -> LeaveTypeOut:
        try:
            return self._types[leave_type_id]
        except KeyError:
            raise NotFoundException("LeaveType", str(leave_type_id)) from None

    def is_active(self, leave_type_id: uuid.UUID) -> bool:
        """Unknown leave types are never active."""
        leave_type = self._types.get(leave_type_id)
        return leave_type is not None and leave_type.is_active

    def active(self) -> list[LeaveTypeOut]:
        return sorted(
            (lt for lt in self._types.values() if lt.is_active),
            key=lambda lt: lt.name,
        )

    def __contains__(self, leave_type_id: object) -> bool:
        return leave_type_id in self._types

    def __iter__(self) -> Iterator[LeaveTypeOut]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
