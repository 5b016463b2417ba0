"""Console interface for the kakeibo ledger."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from kakeibo.config import Settings, configure_logging, load_settings
from kakeibo.exceptions import PersistenceError, ValidationError
from kakeibo.models import LedgerView, Mode, Record
from kakeibo.services import LedgerService
from kakeibo.storage import JSONFileStorage
from kakeibo.validators import validate_month

WEEKDAY_HEADER = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc


def _parse_month(value: str) -> Tuple[int, int]:
    try:
        year_text, month_text = value.split("-", 1)
        return validate_month(year_text, month_text)
    except (ValueError, ValidationError) as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid month '{value}'. Expected format YYYY-MM."
        ) from exc


def _parse_top(value: str) -> int:
    try:
        top = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--top must be an integer") from exc
    if top < 0:
        raise argparse.ArgumentTypeError("--top must not be negative")
    return top


def _yen(amount: int) -> str:
    return f"{amount:,}円"


def _load_service(settings: Settings) -> LedgerService:
    storage = JSONFileStorage(settings.data_dir)
    return LedgerService(storage, settings.storage_key, tz=settings.tzinfo())


def _format_record(record: Record) -> str:
    return (
        f"[{record.id}] {record.occurred_on.isoformat()} {record.signed_amount:+,}円\n"
        f"  Category: {record.category} | Mode: {record.mode.value}\n"
    )


def _format_summary(view: LedgerView) -> str:
    month = view.month_summary
    lines = [
        f"{month.year}-{month.month:02d}",
        f"  Income:  {_yen(month.income_total)}",
        f"  Expense: {_yen(month.expense_total)}",
        f"  Net:     {_yen(month.net)}",
        f"Running balance: {_yen(view.running_balance.net)}",
    ]
    for mode in Mode:
        ranking = view.category_ranking.get(mode, [])
        if not ranking:
            continue
        lines.append(f"Top {mode.value} categories:")
        lines.extend(f"  {entry.category}: {_yen(entry.total)}" for entry in ranking)
    return "\n".join(lines)


def handle_add(args: argparse.Namespace, service: LedgerService) -> None:
    payload: Dict[str, Any] = {
        "mode": args.mode,
        "amount": args.amount,
        "category": args.category,
    }
    if args.date is not None:
        payload["date"] = args.date
    if args.id is not None:
        payload["id"] = args.id
    entry = service.append(payload)
    print(f"Recorded {entry['displayAmount']} ({entry['category']}) on {entry['date']} [{entry['id']}]")


def handle_delete(args: argparse.Namespace, service: LedgerService) -> None:
    service.remove(args.id)
    print(f"Entry {args.id} deleted.")


def handle_list(args: argparse.Namespace, service: LedgerService) -> None:
    if args.date is not None:
        records = service.day_records(args.date)
    else:
        records = service.records()
    if not records:
        print("No entries found.")
        return
    print(f"Found {len(records)} entries:")
    for record in records:
        print(_format_record(record))


def handle_summary(args: argparse.Namespace, service: LedgerService, settings: Settings) -> None:
    reference = date(*args.month, 1) if args.month else service.today()
    top_n = args.top if args.top is not None else settings.top_n
    print(_format_summary(service.aggregate(reference, top_n=top_n)))


def handle_calendar(args: argparse.Namespace, service: LedgerService) -> None:
    if args.month:
        year, month = args.month
    else:
        today = service.today()
        year, month = today.year, today.month
    cells = service.calendar(year, month)
    print(f"{year}-{month:02d}")
    print(" ".join(f"{name:>5}" for name in WEEKDAY_HEADER))
    for week_start in range(0, len(cells), 7):
        week = cells[week_start:week_start + 7]
        print(" ".join(f"{cell.day if cell.day else '':>5}" for cell, _ in week))
        print(" ".join(
            f"{'*' if summary and (summary.income_total or summary.expense_total) else '':>5}"
            for _, summary in week
        ))


def handle_balance(args: argparse.Namespace, service: LedgerService) -> None:
    balance = service.aggregate().running_balance
    print(f"Net balance: {_yen(balance.net)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kakeibo ledger CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory to store JSON data (default: $KAKEIBO_DATA_DIR or ./data)",
    )
    parser.add_argument("--log-level", help="Logging level (default: $KAKEIBO_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Record an expense or income")
    add.add_argument("mode", choices=[mode.value for mode in Mode])
    add.add_argument("amount", help="Whole yen amount")
    add.add_argument("category", nargs="?", default="")
    add.add_argument("--date", help="YYYY/M/D (default: today)")
    add.add_argument("--id", help="Explicit entry id")

    delete = subparsers.add_parser("delete", help="Delete an entry by id")
    delete.add_argument("id")

    listing = subparsers.add_parser("list", help="List entries")
    listing.add_argument("--date", type=_parse_day, help="Only entries on YYYY-MM-DD, newest first")

    summary = subparsers.add_parser("summary", help="Month totals and category rankings")
    summary.add_argument("--month", type=_parse_month, help="YYYY-MM (default: this month)")
    summary.add_argument("--top", type=_parse_top, help="Categories shown before folding into 'other'")

    calendar = subparsers.add_parser("calendar", help="Print a month calendar")
    calendar.add_argument("--month", type=_parse_month, help="YYYY-MM (default: this month)")

    subparsers.add_parser("balance", help="All-time net balance")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        configure_logging(args.log_level or settings.log_level)
        if args.data_dir is not None:
            settings = replace(settings, data_dir=args.data_dir)
        service = _load_service(settings)

        if args.command == "add":
            handle_add(args, service)
        elif args.command == "delete":
            handle_delete(args, service)
        elif args.command == "list":
            handle_list(args, service)
        elif args.command == "summary":
            handle_summary(args, service, settings)
        elif args.command == "calendar":
            handle_calendar(args, service)
        elif args.command == "balance":
            handle_balance(args, service)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown command: {args.command}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
