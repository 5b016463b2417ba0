"""Framework-agnostic ledger services: snapshot mutations and read views."""

from __future__ import annotations

import copy
import json
import logging
import threading
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from .aggregation import aggregate, records_on, summarize_days
from .calendar_grid import build_month_grid, month_heatmap, normalize_month
from .config import DEFAULT_STORAGE_KEY
from .exceptions import PersistenceError, ValidationError
from .models import CalendarCell, DaySummary, LedgerView, Mode, Record, isoformat_utc
from .normalizer import entry_ids, normalize_records, parse_date_string
from .storage import KeyValueStorage
from .validators import (
    YEN_SUFFIX,
    coerce_amount,
    format_display_amount,
    normalize_category,
    validate_mode,
    validate_required_str,
)

logger = logging.getLogger(__name__)

Snapshot = Tuple[Any, ...]
Clock = Callable[[], datetime]

MAX_ID_LENGTH = 100
MAX_CATEGORY_LENGTH = 50


# Snapshot helpers -----------------------------------------------------------
def decode_records(blob: Optional[str]) -> List[Any]:
    """Decode the stored JSON array; a missing or malformed blob is an empty ledger."""
    if blob is None:
        return []
    try:
        payload = json.loads(blob)
    except (TypeError, ValueError):
        logger.warning("Stored ledger is not valid JSON; treating it as empty")
        return []
    if not isinstance(payload, list):
        logger.warning("Stored ledger is not a JSON array; treating it as empty")
        return []
    return payload


def encode_records(entries: Sequence[Any]) -> str:
    return json.dumps(list(entries), ensure_ascii=False)


def append_record(snapshot: Sequence[Any], entry: Mapping[str, Any]) -> Snapshot:
    """Return a new snapshot with ``entry`` first; existing entries are untouched."""
    return (dict(entry),) + tuple(snapshot)


def remove_record(snapshot: Sequence[Any], record_id: str) -> Snapshot:
    """Return a new snapshot without ``record_id``; unknown ids leave it unchanged.

    Entries stored without an ``id`` match the id they are listed under.
    """
    entries = tuple(snapshot)
    return tuple(
        entry
        for entry, entry_id in zip(entries, entry_ids(entries))
        if entry_id != record_id
    )


def new_record_id(now: datetime) -> str:
    millis = int(now.timestamp() * 1000)
    return f"{millis}-{uuid4().hex[:12]}"


def format_date_label(day: date) -> str:
    """Stored ``date`` field format, ``YYYY/M/D`` without zero padding."""
    return f"{day.year}/{day.month}/{day.day}"


def build_entry(
    payload: Mapping[str, Any], *, now: datetime, tz: Optional[tzinfo] = None
) -> Dict[str, Any]:
    """Compose a persisted ledger entry from caller input."""
    local_now = now.astimezone(tz)

    raw_id = payload.get("id")
    record_id = (
        validate_required_str(raw_id, "id", MAX_ID_LENGTH)
        if raw_id is not None
        else new_record_id(now)
    )
    raw_mode = payload.get("mode")
    mode = validate_mode(raw_mode) if raw_mode is not None else Mode.EXPENSE

    category = payload.get("category", payload.get("store"))
    if category is not None and not isinstance(category, str):
        raise ValidationError("category must be a string")
    category = normalize_category(category)
    if len(category) > MAX_CATEGORY_LENGTH:
        raise ValidationError(f"category must be at most {MAX_CATEGORY_LENGTH} characters")

    occurred_on = _occurred_on(payload, local_now)
    # Backdated entries are stamped on their own day so the instant resolves to it.
    if occurred_on == local_now.date():
        recorded_at = local_now
    else:
        wall_clock = datetime.combine(occurred_on, local_now.time())
        recorded_at = wall_clock.astimezone() if tz is None else wall_clock.replace(tzinfo=tz)

    raw_amount = payload.get("amount", payload.get("actualAmount"))
    stored_amount = _stored_amount(raw_amount)

    return {
        "id": record_id,
        "date": format_date_label(occurred_on),
        "mode": mode.value,
        "category": category,
        "displayAmount": format_display_amount(mode, coerce_amount(stored_amount)),
        "actualAmount": stored_amount,
        "createdAt": isoformat_utc(recorded_at),
    }


def _occurred_on(payload: Mapping[str, Any], local_now: datetime) -> date:
    candidate = payload.get("date", payload.get("occurred_on"))
    if candidate is None:
        return local_now.date()
    if isinstance(candidate, datetime):
        return candidate.date()
    if isinstance(candidate, date):
        return candidate
    parsed = parse_date_string(candidate, local_now.year)
    if parsed is None:
        raise ValidationError("date must be formatted as YYYY/M/D or M/D")
    return parsed


def _stored_amount(raw: object) -> Any:
    if raw is None:
        return 0
    amount = coerce_amount(raw)
    if amount:
        return amount
    text = str(raw).strip().replace(",", "")
    if text.endswith(YEN_SUFFIX):
        text = text[: -len(YEN_SUFFIX)]
    try:
        numeric = Decimal(text) if not isinstance(raw, bool) else None
    except InvalidOperation:
        numeric = None
    if numeric is None:
        # Kept verbatim so listings still show it; aggregation counts it as zero.
        logger.warning("Non-numeric amount %r stored as-is", raw)
        return raw
    if numeric.is_finite() and numeric < 0:
        raise ValidationError("amount must not be negative; the mode carries the sign")
    return 0


# Services -------------------------------------------------------------------
class LedgerService:
    """Loads, mutates and aggregates the ledger stored under one key.

    Mutations read the stored array, apply a snapshot function and write the
    whole array back. The lock serialises writers inside this process only;
    separate processes sharing the storage remain last-writer-wins.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = DEFAULT_STORAGE_KEY,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._tz = tz
        self._clock: Clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._snapshot: Snapshot = ()
        self.reload()  # Hydrate the snapshot from persistence on construction.

    # Public API -----------------------------------------------------------
    def reload(self) -> Snapshot:
        """Re-read storage; views computed afterwards reflect the stored state."""
        self._snapshot = tuple(self._read())
        return self._snapshot

    def append(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        entry = build_entry(payload, now=self._clock(), tz=self._tz)
        with self._lock:
            current = self._read()
            if entry["id"] in entry_ids(current):
                logger.warning("Appending entry with duplicate id %s", entry["id"])
            updated = append_record(current, entry)
            self._write(updated)
            self._snapshot = updated
        logger.info("Appended %s entry %s", entry["mode"], entry["id"])
        return dict(entry)

    def remove(self, record_id: str) -> None:
        """Delete every entry with ``record_id``; unknown ids are a no-op."""
        with self._lock:
            current = tuple(self._read())
            updated = remove_record(current, record_id)
            if len(updated) == len(current):
                logger.debug("Entry %s not present; nothing to remove", record_id)
                self._snapshot = current
                return
            self._write(updated)
            self._snapshot = updated
        logger.info("Removed entry %s", record_id)

    def raw_records(self) -> List[Any]:
        """Stored entries exactly as persisted, newest append first."""
        return [copy.deepcopy(entry) for entry in self._snapshot]

    def records(self, reference_year: Optional[int] = None) -> List[Record]:
        today = self.today()
        return normalize_records(
            self._snapshot,
            reference_year=reference_year if reference_year is not None else today.year,
            today=today,
            tz=self._tz,
        )

    def aggregate(
        self, reference_date: Optional[date] = None, *, top_n: Optional[int] = None
    ) -> LedgerView:
        reference = reference_date or self.today()
        return aggregate(
            self.records(reference_year=reference.year), reference, top_n=top_n
        )

    def month_grid(self, year: int, month: int) -> List[CalendarCell]:
        return build_month_grid(year, month)

    def calendar(
        self, year: int, month: int
    ) -> List[Tuple[CalendarCell, Optional[DaySummary]]]:
        year, month = normalize_month(year, month)
        day_summaries = summarize_days(self.records(reference_year=year))
        return month_heatmap(build_month_grid(year, month), day_summaries)

    def day_records(self, day: date) -> List[Record]:
        return records_on(self.records(reference_year=day.year), day)

    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return serialisable snapshot useful for testing or exports."""
        return {"records": [record.to_dict() for record in self.records()]}

    # Internal helpers -----------------------------------------------------
    def _read(self) -> List[Any]:
        try:
            blob = self._storage.get(self._key)
        except PersistenceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive guard
            raise PersistenceError("Unexpected error while loading records") from exc
        return decode_records(blob)

    def _write(self, entries: Sequence[Any]) -> None:
        try:
            self._storage.set(self._key, encode_records(entries))
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError("Unexpected error while saving records") from exc
