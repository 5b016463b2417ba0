"""Fixed-size month grids for calendar views."""

from __future__ import annotations

from datetime import MAXYEAR, MINYEAR, date, timedelta
from typing import Dict, List, Optional, Tuple

from .models import CalendarCell, DaySummary

GRID_SIZE = 42
DAYS_PER_WEEK = 7


def normalize_month(year: int, month: int) -> Tuple[int, int]:
    """Roll an out-of-range month into the matching year, e.g. (2024, 13) -> (2025, 1)."""
    carry, index = divmod(month - 1, 12)
    return year + carry, index + 1


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    return normalize_month(year, month + delta)


def _supported_month(year: int, month: int) -> Tuple[int, int]:
    """Normalise, then pin months outside the representable years to the nearest end."""
    year, month = normalize_month(year, month)
    if year < MINYEAR:
        return MINYEAR, 1
    if year > MAXYEAR:
        return MAXYEAR, 12
    return year, month


def days_in_month(year: int, month: int) -> int:
    year, month = _supported_month(year, month)
    if month == 12:
        return 31
    next_year, next_month = shift_month(year, month, 1)
    # Day zero of the next month is the last day of this one.
    return (date(next_year, next_month, 1) - timedelta(days=1)).day


def first_weekday(year: int, month: int) -> int:
    """Weekday of the 1st, counting 0 = Sunday through 6 = Saturday."""
    year, month = _supported_month(year, month)
    return (date(year, month, 1).weekday() + 1) % DAYS_PER_WEEK


def build_month_grid(year: int, month: int) -> List[CalendarCell]:
    """Lay a month out over six Sunday-first weeks; always ``GRID_SIZE`` cells.

    Months before year 1 or after year 9999 render as January 1 or December 9999.
    """
    year, month = _supported_month(year, month)
    cells = [CalendarCell() for _ in range(first_weekday(year, month))]
    cells.extend(
        CalendarCell(day=day, date=date(year, month, day))
        for day in range(1, days_in_month(year, month) + 1)
    )
    while len(cells) < GRID_SIZE:
        cells.append(CalendarCell())
    return cells


def month_heatmap(
    grid: List[CalendarCell], day_summaries: Dict[date, DaySummary]
) -> List[Tuple[CalendarCell, Optional[DaySummary]]]:
    """Pair every cell with the summary of its day, if any."""
    return [
        (cell, day_summaries.get(cell.date) if cell.date is not None else None)
        for cell in grid
    ]
