"""Calendar helpers for building the list of stay dates to collect."""
from __future__ import annotations

import calendar
from datetime import date
from typing import Iterable, List, Optional


def dates_in_month(year: int, month: int) -> List[str]:
    """Every ISO date in the given month."""
    _, last = calendar.monthrange(year, month)
    return [date(year, month, day).isoformat() for day in range(1, last + 1)]


def month_sequence(start_month: int, start_year: int, months: int) -> List[tuple[int, int]]:
    """``months`` consecutive (year, month) pairs, rolling over December."""
    if not 1 <= start_month <= 12:
        raise ValueError("start_month must be between 1 and 12")
    if months < 1:
        raise ValueError("months must be at least 1")
    sequence: List[tuple[int, int]] = []
    for offset in range(months):
        index = start_month - 1 + offset
        sequence.append((start_year + index // 12, index % 12 + 1))
    return sequence


def collection_window(
    start_month: int,
    start_year: int,
    months: int,
    *,
    not_before: Optional[date] = None,
) -> List[str]:
    """All stay dates in the configured window, optionally dropping past dates."""
    dates: List[str] = []
    for year, month in month_sequence(start_month, start_year, months):
        dates.extend(dates_in_month(year, month))
    if not_before is not None:
        floor = not_before.isoformat()
        dates = [day for day in dates if day >= floor]
    return dates


def missing_dates(requested: Iterable[str], cached: Iterable[str]) -> List[str]:
    """Requested dates that have no cached snapshot yet, in request order."""
    have = set(cached)
    return [day for day in requested if day not in have]
