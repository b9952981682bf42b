"""Date-range arithmetic for leave requests.

Pure, deterministic helpers with no I/O. The validator and the ledger both
count days through this module so they always agree.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

from leave_accounting.common.constants import WEEKEND_DAYS
from leave_accounting.common.exceptions import InvalidRange


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``; nothing if end < start."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def inclusive_day_count(start: date, end: date) -> int:
    """Number of calendar days in ``[start, end]``.

    Raises:
        InvalidRange: if ``end`` is before ``start``.
    """
    if end < start:
        raise InvalidRange(start, end)
    return (end - start).days + 1


def is_weekend(day: date) -> bool:
    return day.weekday() in WEEKEND_DAYS


def chargeable_day_count(
    start: date,
    end: date,
    exclude_weekends: bool = True,
    holidays: Iterable[date] = frozenset(),
) -> int:
    """Count the days of ``[start, end]`` that consume leave balance.

    Saturdays and Sundays are skipped when ``exclude_weekends`` is set, and
    any date in ``holidays`` is skipped. A range made only of excluded days
    yields 0; an inverted range also yields 0.
    """
    holiday_set = holidays if isinstance(holidays, (set, frozenset)) else set(holidays)
    count = 0
    for day in iter_days(start, end):
        if exclude_weekends and is_weekend(day):
            continue
        if day in holiday_set:
            continue
        count += 1
    return count


def years_spanned(start: date, end: date) -> range:
    """Calendar years touched by ``[start, end]`` (empty when inverted)."""
    return range(start.year, end.year + 1) if start <= end else range(0)


def ranges_overlap(
    a_start: date,
    a_end: date,
    b_start: date,
    b_end: date,
) -> bool:
    """True if the inclusive ranges share at least one day."""
    return a_start <= b_end and b_start <= a_end
