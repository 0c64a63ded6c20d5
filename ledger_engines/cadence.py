"""
Module: ledger_engines.cadence
Responsibility:
    Month-based date arithmetic for ledger schedules.  Every installment,
    recurring and propagated date in the ledger is placed by ``shift``: the
    same day-of-month ``n`` calendar months away, clamped to the last day of
    the target month when that day does not exist there.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports nothing beyond the standard library; every other engine that
    moves a date goes through this module.

Invariants enforced:
    - Purity: no clock access, no I/O.
    - Day clamping never spills into the following month: a due date on the
      31st lands on Feb 28/29, Apr 30 and so on.
    - ``shift(d, 0) == d`` for every date.

Failure modes:
    - ValueError from ``anchor_to_day`` when the requested day is outside
      1..31.

Usage:
    from ledger_engines.cadence import shift, anchor_to_day, months_between

    shift(date(2024, 1, 31), 1)           # date(2024, 2, 29)
    anchor_to_day(date(2024, 4, 5), 31)   # date(2024, 4, 30)
    months_between(date(2024, 1, 31), date(2024, 3, 1))  # 2
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in ``month`` of ``year``."""
    return monthrange(year, month)[1]


def shift(anchor: date, month_offset: int) -> date:
    """
    Move ``anchor`` by ``month_offset`` calendar months.

    Keeps the day-of-month when it exists in the target month, otherwise
    returns the target month's last day.  Zero and negative offsets are
    accepted.
    """
    months = anchor.year * 12 + (anchor.month - 1) + month_offset
    year, month_index = divmod(months, 12)
    month = month_index + 1
    day = min(anchor.day, last_day_of_month(year, month))
    return date(year, month, day)


def anchor_to_day(value: date, day: int) -> date:
    """
    Place ``value`` on ``day`` of its own month, clamped to the month's end.

    Raises:
        ValueError: If ``day`` is outside 1..31.
    """
    if not 1 <= day <= 31:
        raise ValueError(f"day must be between 1 and 31, got {day}")
    return value.replace(day=min(day, last_day_of_month(value.year, value.month)))


def months_between(start: date, end: date) -> int:
    """Whole calendar-month difference from ``start`` to ``end``, ignoring days."""
    return (end.year - start.year) * 12 + (end.month - start.month)
