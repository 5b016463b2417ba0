"""Data models for the kakeibo ledger domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

__all__ = [
    "CalendarCell",
    "CategoryTotal",
    "DaySummary",
    "LedgerView",
    "Mode",
    "MonthSummary",
    "OTHER_CATEGORY",
    "Record",
    "RunningBalance",
    "UNCATEGORIZED",
    "day_key",
    "isoformat_utc",
    "parse_datetime",
]

UNCATEGORIZED = "uncategorized"
OTHER_CATEGORY = "other"


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="milliseconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def day_key(day: date) -> str:
    """Render a canonical date as the ``YYYY-MM-DD`` key used in JSON output."""
    return day.isoformat()


class Mode(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


@dataclass(frozen=True)
class Record:
    """One normalized transaction; the only record shape past the normalizer."""

    id: str
    occurred_on: date
    mode: Mode
    category: str
    amount: int
    recorded_at: Optional[datetime] = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.mode is Mode.INCOME else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "occurred_on": day_key(self.occurred_on),
            "mode": self.mode.value,
            "category": self.category,
            "amount": self.amount,
            "recorded_at": isoformat_utc(self.recorded_at) if self.recorded_at else None,
        }


@dataclass(frozen=True)
class DaySummary:
    income_total: int = 0
    expense_total: int = 0

    @property
    def net(self) -> int:
        return self.income_total - self.expense_total

    def to_dict(self) -> Dict[str, int]:
        return {"income": self.income_total, "expense": self.expense_total}


@dataclass(frozen=True)
class MonthSummary:
    year: int
    month: int
    income_total: int = 0
    expense_total: int = 0

    @property
    def net(self) -> int:
        return self.income_total - self.expense_total

    def to_dict(self) -> Dict[str, int]:
        return {
            "year": self.year,
            "month": self.month,
            "income": self.income_total,
            "expense": self.expense_total,
            "net": self.net,
        }


@dataclass(frozen=True)
class RunningBalance:
    income_total: int = 0
    expense_total: int = 0

    @property
    def net(self) -> int:
        return self.income_total - self.expense_total

    def to_dict(self) -> Dict[str, int]:
        return {"income": self.income_total, "expense": self.expense_total, "net": self.net}


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "total": self.total}


@dataclass(frozen=True)
class CalendarCell:
    """A single slot of the 6x7 month grid; blank slots carry no day."""

    day: Optional[int] = None
    date: Optional[date] = None

    @property
    def is_blank(self) -> bool:
        return self.day is None

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.day, "date": day_key(self.date) if self.date else None}


@dataclass(frozen=True)
class LedgerView:
    """Every derived aggregate for one reference date, recomputed per read."""

    reference_date: date
    day_summaries: Dict[date, DaySummary]
    month_summary: MonthSummary
    running_balance: RunningBalance
    category_ranking: Dict[Mode, List[CategoryTotal]] = field(default_factory=dict)
    record_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the view to JSON-friendly natives."""
        return {
            "reference_date": day_key(self.reference_date),
            "day_summaries": {
                day_key(day): summary.to_dict()
                for day, summary in sorted(self.day_summaries.items())
            },
            "month_summary": self.month_summary.to_dict(),
            "running_balance": self.running_balance.to_dict(),
            "category_ranking": {
                mode.value: [entry.to_dict() for entry in ranking]
                for mode, ranking in self.category_ranking.items()
            },
            "record_count": self.record_count,
        }
