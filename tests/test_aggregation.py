from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from kakeibo.aggregation import (
    aggregate,
    collapse_top_n,
    rank_categories,
    records_in_month,
    records_on,
    running_balance,
    summarize_days,
    summarize_month,
)
from kakeibo.models import CategoryTotal, DaySummary, Mode, OTHER_CATEGORY, Record
from kakeibo.normalizer import normalize_records

from .conftest import FROZEN_TODAY


def _record(record_id, day, mode, category, amount, recorded_at=None):
    return Record(
        id=record_id,
        occurred_on=day,
        mode=mode,
        category=category,
        amount=amount,
        recorded_at=recorded_at,
    )


@pytest.fixture
def mixed_records():
    return [
        _record("a", date(2024, 2, 28), Mode.EXPENSE, "rent", 70000),
        _record("b", date(2024, 3, 1), Mode.INCOME, "salary", 250000),
        _record("c", date(2024, 3, 1), Mode.EXPENSE, "food", 1200),
        _record("d", date(2024, 3, 15), Mode.EXPENSE, "cafe", 480),
        _record("e", date(2023, 3, 15), Mode.EXPENSE, "cafe", 520),
        _record("f", date(2024, 4, 2), Mode.INCOME, "bonus", 30000),
    ]


def test_concrete_march_scenario(march_entries):
    records = normalize_records(march_entries, today=FROZEN_TODAY, tz=timezone.utc)
    view = aggregate(records, date(2024, 3, 1))

    assert view.day_summaries[date(2024, 3, 5)] == DaySummary(income_total=10000, expense_total=500)
    assert view.day_summaries[date(2024, 3, 6)] == DaySummary(income_total=0, expense_total=300)
    assert view.month_summary.income_total == 10000
    assert view.month_summary.expense_total == 800
    assert view.month_summary.net == 9200
    assert view.running_balance.net == 9200
    assert view.category_ranking[Mode.EXPENSE] == [CategoryTotal("food", 800)]
    assert view.category_ranking[Mode.INCOME] == [CategoryTotal("salary", 10000)]


def test_day_keys_do_not_collide_across_years(mixed_records):
    days = summarize_days(mixed_records)
    assert days[date(2024, 3, 15)].expense_total == 480
    assert days[date(2023, 3, 15)].expense_total == 520


def test_day_summaries_conserve_month_totals(mixed_records):
    days = summarize_days(mixed_records)
    month = summarize_month(mixed_records, 2024, 3)
    in_month = [summary for day, summary in days.items() if (day.year, day.month) == (2024, 3)]
    assert sum(s.income_total for s in in_month) + sum(s.expense_total for s in in_month) == (
        month.income_total + month.expense_total
    )


@pytest.mark.parametrize("reference", [date(2023, 3, 1), date(2024, 3, 31), date(2030, 1, 1)])
def test_running_balance_ignores_reference_month(mixed_records, reference):
    view = aggregate(mixed_records, reference)
    assert view.running_balance.net == (250000 + 30000) - (70000 + 1200 + 480 + 520)


def test_month_summary_only_counts_reference_month(mixed_records):
    month = summarize_month(mixed_records, 2024, 3)
    assert (month.income_total, month.expense_total, month.net) == (250000, 1680, 248320)


def test_empty_ledger():
    view = aggregate([], FROZEN_TODAY)
    assert view.day_summaries == {}
    assert view.month_summary.net == 0
    assert view.running_balance.net == 0
    assert view.category_ranking == {Mode.EXPENSE: [], Mode.INCOME: []}
    assert view.record_count == 0


def test_ranking_is_stable_for_equal_totals():
    records = [
        _record("1", FROZEN_TODAY, Mode.EXPENSE, "food", 500),
        _record("2", FROZEN_TODAY, Mode.EXPENSE, "transport", 300),
        _record("3", FROZEN_TODAY, Mode.EXPENSE, "cafe", 500),
        _record("4", FROZEN_TODAY, Mode.EXPENSE, "books", 300),
        _record("5", FROZEN_TODAY, Mode.INCOME, "gift", 900),
    ]
    ranking = rank_categories(records, Mode.EXPENSE)
    assert [(entry.category, entry.total) for entry in ranking] == [
        ("food", 500),
        ("cafe", 500),
        ("transport", 300),
        ("books", 300),
    ]


def test_ranking_can_be_restricted_to_a_month(mixed_records):
    ranking = rank_categories(mixed_records, Mode.EXPENSE, month=(2024, 3))
    assert [entry.category for entry in ranking] == ["food", "cafe"]


def test_top_n_collapse_folds_the_tail():
    ranking = [CategoryTotal("a", 500), CategoryTotal("b", 300), CategoryTotal("c", 200)]
    assert collapse_top_n(ranking, 1) == [CategoryTotal("a", 500), CategoryTotal(OTHER_CATEGORY, 500)]
    assert collapse_top_n(ranking, 3) == ranking
    assert collapse_top_n(ranking, 0) == [CategoryTotal(OTHER_CATEGORY, 1000)]


def test_top_n_collapse_skips_empty_bucket():
    ranking = [CategoryTotal("a", 500), CategoryTotal("b", 0)]
    assert collapse_top_n(ranking, 1) == [CategoryTotal("a", 500)]


def test_top_n_rejects_negative():
    with pytest.raises(ValueError):
        collapse_top_n([], -1)


def test_aggregate_applies_top_n(mixed_records):
    view = aggregate(mixed_records, date(2024, 3, 1), top_n=1)
    assert view.category_ranking[Mode.EXPENSE] == [
        CategoryTotal("rent", 70000),
        CategoryTotal(OTHER_CATEGORY, 2200),
    ]


def test_corrupt_amount_contributes_zero():
    raws = [
        {"id": "x", "date": "2024/3/5", "category": "food", "actualAmount": "abc"},
        {"id": "y", "date": "2024/3/5", "category": "food", "actualAmount": 700},
    ]
    records = normalize_records(raws, today=FROZEN_TODAY, tz=timezone.utc)
    view = aggregate(records, date(2024, 3, 5))
    assert view.record_count == 2
    assert view.month_summary.expense_total == 700
    assert view.category_ranking[Mode.EXPENSE] == [CategoryTotal("food", 700)]


def test_unparseable_dates_land_on_processing_date():
    raws = [{"id": "lost", "date": "13/45", "createdAt": "nope", "actualAmount": 100}]
    records = normalize_records(raws, today=FROZEN_TODAY, tz=timezone.utc)
    view = aggregate(records, FROZEN_TODAY)
    assert view.record_count == len(raws)
    assert view.day_summaries[FROZEN_TODAY].expense_total == 100


def test_records_on_orders_newest_first():
    day = date(2024, 3, 5)
    records = [
        _record("old", day, Mode.EXPENSE, "food", 1, datetime(2024, 3, 5, 8, tzinfo=timezone.utc)),
        _record("legacy", day, Mode.EXPENSE, "food", 1),
        _record("new", day, Mode.EXPENSE, "food", 1, datetime(2024, 3, 5, 20, tzinfo=timezone.utc)),
        _record("other-day", date(2024, 3, 6), Mode.EXPENSE, "food", 1),
    ]
    assert [record.id for record in records_on(records, day)] == ["new", "old", "legacy"]


def test_records_in_month(mixed_records):
    assert [record.id for record in records_in_month(mixed_records, 2024, 3)] == ["b", "c", "d"]


def test_running_balance_totals(mixed_records):
    balance = running_balance(mixed_records)
    assert balance.income_total == 280000
    assert balance.expense_total == 72200


def test_view_serialises_day_keys(march_entries):
    records = normalize_records(march_entries, today=FROZEN_TODAY, tz=timezone.utc)
    payload = aggregate(records, date(2024, 3, 1)).to_dict()
    assert payload["day_summaries"]["2024-03-05"] == {"income": 10000, "expense": 500}
    assert payload["month_summary"]["net"] == 9200
    assert payload["category_ranking"]["expense"] == [{"category": "food", "total": 800}]
