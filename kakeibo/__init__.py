"""Core ledger aggregation package for the kakeibo tracker."""

from .aggregation import aggregate, collapse_top_n, rank_categories, records_on
from .calendar_grid import GRID_SIZE, build_month_grid, shift_month
from .exceptions import PersistenceError, RecordNotFoundError, ValidationError
from .models import (
    CalendarCell,
    CategoryTotal,
    DaySummary,
    LedgerView,
    Mode,
    MonthSummary,
    Record,
    RunningBalance,
)
from .normalizer import normalize_record, normalize_records
from .services import LedgerService
from .storage import JSONFileStorage, MemoryStorage

__all__ = [
    "CalendarCell",
    "CategoryTotal",
    "DaySummary",
    "GRID_SIZE",
    "JSONFileStorage",
    "LedgerService",
    "LedgerView",
    "MemoryStorage",
    "Mode",
    "MonthSummary",
    "PersistenceError",
    "Record",
    "RecordNotFoundError",
    "RunningBalance",
    "ValidationError",
    "aggregate",
    "build_month_grid",
    "collapse_top_n",
    "normalize_record",
    "normalize_records",
    "rank_categories",
    "records_on",
    "shift_month",
]
