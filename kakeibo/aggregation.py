"""Pure aggregation over normalized ledger records.

Every function here is a synchronous pass over an in-memory collection and
never raises on record content; amounts were already coerced to whole yen
by the normalizer.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    CategoryTotal,
    DaySummary,
    LedgerView,
    Mode,
    MonthSummary,
    OTHER_CATEGORY,
    Record,
    RunningBalance,
)

__all__ = [
    "aggregate",
    "collapse_top_n",
    "rank_categories",
    "records_in_month",
    "records_on",
    "running_balance",
    "summarize_days",
    "summarize_month",
]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _in_month(record: Record, year: int, month: int) -> bool:
    return record.occurred_on.year == year and record.occurred_on.month == month


def summarize_days(records: Iterable[Record]) -> Dict[date, DaySummary]:
    """Bucket income and expense totals by full calendar date."""
    buckets: Dict[date, List[int]] = defaultdict(lambda: [0, 0])
    for record in records:
        bucket = buckets[record.occurred_on]
        if record.mode is Mode.INCOME:
            bucket[0] += record.amount
        else:
            bucket[1] += record.amount
    return {
        day: DaySummary(income_total=income, expense_total=expense)
        for day, (income, expense) in sorted(buckets.items())
    }


def summarize_month(records: Iterable[Record], year: int, month: int) -> MonthSummary:
    income_total = 0
    expense_total = 0
    for record in records:
        if not _in_month(record, year, month):
            continue
        if record.mode is Mode.INCOME:
            income_total += record.amount
        else:
            expense_total += record.amount
    return MonthSummary(
        year=year, month=month, income_total=income_total, expense_total=expense_total
    )


def running_balance(records: Iterable[Record]) -> RunningBalance:
    """All-time totals; no date filter applies."""
    income_total = 0
    expense_total = 0
    for record in records:
        if record.mode is Mode.INCOME:
            income_total += record.amount
        else:
            expense_total += record.amount
    return RunningBalance(income_total=income_total, expense_total=expense_total)


def rank_categories(
    records: Iterable[Record],
    mode: Mode,
    *,
    top_n: Optional[int] = None,
    month: Optional[Tuple[int, int]] = None,
) -> List[CategoryTotal]:
    """Rank categories of one mode by total, largest first.

    Equal totals keep the order in which their category was first seen.
    ``month`` restricts the ranking to one ``(year, month)``.
    """
    totals: Dict[str, int] = {}
    for record in records:
        if record.mode is not mode:
            continue
        if month is not None and not _in_month(record, *month):
            continue
        totals[record.category] = totals.get(record.category, 0) + record.amount

    # sorted() is stable and dicts keep first-insertion order.
    ranking = [
        CategoryTotal(category=category, total=total)
        for category, total in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    if top_n is None:
        return ranking
    return collapse_top_n(ranking, top_n)


def collapse_top_n(ranking: Sequence[CategoryTotal], top_n: int) -> List[CategoryTotal]:
    """Keep the first ``top_n`` entries and fold the rest into an ``other`` bucket.

    The bucket is only emitted when the folded total is positive.
    """
    if top_n < 0:
        raise ValueError("top_n must not be negative")
    head = list(ranking[:top_n])
    rest_total = sum(entry.total for entry in ranking[top_n:])
    if rest_total > 0:
        head.append(CategoryTotal(category=OTHER_CATEGORY, total=rest_total))
    return head


def records_in_month(records: Iterable[Record], year: int, month: int) -> List[Record]:
    return [record for record in records if _in_month(record, year, month)]


def records_on(records: Iterable[Record], day: date) -> List[Record]:
    """Records of one calendar day, newest ``recorded_at`` first."""
    matching = [record for record in records if record.occurred_on == day]
    return sorted(
        matching,
        key=lambda record: record.recorded_at or _EPOCH,
        reverse=True,
    )


def aggregate(
    records: Sequence[Record],
    reference_date: date,
    *,
    top_n: Optional[int] = None,
) -> LedgerView:
    """Build every derived view for ``reference_date`` from scratch."""
    return LedgerView(
        reference_date=reference_date,
        day_summaries=summarize_days(records),
        month_summary=summarize_month(records, reference_date.year, reference_date.month),
        running_balance=running_balance(records),
        category_ranking={
            mode: rank_categories(records, mode, top_n=top_n) for mode in Mode
        },
        record_count=len(records),
    )
