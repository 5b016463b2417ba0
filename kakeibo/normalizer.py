"""Normalisation of persisted ledger entries into canonical records.

Stored entries come from several generations of the app: some carry a
``category`` and a full ``YYYY/M/D`` date, older ones a ``store`` label and a
bare ``M/D`` date. Everything past this module sees only :class:`Record`.

The occurred-on date resolves in a fixed order:

1. the ``createdAt`` instant, converted to the local calendar date;
2. the ``date`` string, either ``Y/M/D`` (``/`` or ``-`` delimited) or the
   short ``M/D`` form completed with a caller-supplied reference year;
3. the current processing date.

A record is never dropped because of its date. Entries stored without an
``id`` get one derived from their content, stable across reads.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from datetime import date, datetime, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import Record, parse_datetime
from .validators import coerce_amount, normalize_category, normalize_mode

logger = logging.getLogger(__name__)

__all__ = [
    "derive_entry_id",
    "entry_ids",
    "normalize_record",
    "normalize_records",
    "parse_date_string",
    "parse_timestamp",
    "parse_timestamp_date",
    "resolve_occurred_on",
]

_FULL_DATE = re.compile(r"^\s*(\d{1,4})\s*[/-]\s*(\d{1,2})\s*[/-]\s*(\d{1,2})\s*$")
_SHORT_DATE = re.compile(r"^\s*(\d{1,2})\s*[/-]\s*(\d{1,2})\s*$")
DERIVED_ID_PREFIX = "legacy-"


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    if not (year and month and day):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _canonical_entry(raw: object) -> str:
    return json.dumps(raw, sort_keys=True, ensure_ascii=False, default=str)


def _digest_id(canonical: str, occurrence: int) -> str:
    digest = hashlib.sha1(f"{canonical}#{occurrence}".encode("utf-8")).hexdigest()
    return f"{DERIVED_ID_PREFIX}{digest[:16]}"


def derive_entry_id(raw: object, occurrence: int = 0) -> str:
    """Content-derived id for an entry stored without one.

    ``occurrence`` tells identical entries apart by their rank among equals.
    """
    return _digest_id(_canonical_entry(raw), occurrence)


def entry_ids(raws: Iterable[object]) -> List[str]:
    """Effective id of every stored entry, in order."""
    ids: List[str] = []
    seen: Dict[str, int] = {}
    for raw in raws:
        raw_id = raw.get("id") if isinstance(raw, Mapping) else None
        if raw_id is not None:
            ids.append(str(raw_id))
            continue
        canonical = _canonical_entry(raw)
        occurrence = seen.get(canonical, 0)
        seen[canonical] = occurrence + 1
        ids.append(_digest_id(canonical, occurrence))
    return ids


def parse_timestamp(raw: object) -> Optional[datetime]:
    """Parse an ISO 8601 instant; anything unusable yields ``None``."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return parse_datetime(raw)
    except (ValueError, OverflowError):
        return None


def parse_timestamp_date(raw: object, tz: Optional[tzinfo] = None) -> Optional[date]:
    """Return the calendar date of an instant in ``tz`` (system local zone when ``None``)."""
    instant = parse_timestamp(raw)
    if instant is None:
        return None
    try:
        return instant.astimezone(tz).date()
    except (ValueError, OverflowError):
        return None


def parse_date_string(raw: object, reference_year: Optional[int] = None) -> Optional[date]:
    """Parse ``Y/M/D`` or legacy ``M/D`` date strings.

    The short form needs ``reference_year``; without one it is unparseable.
    Zero components and impossible calendar dates are rejected.
    """
    if not isinstance(raw, str):
        return None
    match = _FULL_DATE.match(raw)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)
    match = _SHORT_DATE.match(raw)
    if match and reference_year:
        month, day = (int(part) for part in match.groups())
        return _safe_date(reference_year, month, day)
    return None


def resolve_occurred_on(
    raw: Mapping[str, Any],
    *,
    reference_year: Optional[int] = None,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> date:
    """Resolve the authoritative calendar date of one stored entry."""
    resolved = parse_timestamp_date(raw.get("createdAt"), tz)
    if resolved is not None:
        return resolved

    fallback_today = today or datetime.now(tz).date()
    year = reference_year if reference_year is not None else fallback_today.year
    resolved = parse_date_string(raw.get("date"), year)
    if resolved is not None:
        return resolved

    logger.debug(
        "Entry %r has no usable date (createdAt=%r, date=%r); using %s",
        raw.get("id"),
        raw.get("createdAt"),
        raw.get("date"),
        fallback_today,
    )
    return fallback_today


def normalize_record(
    raw: object,
    *,
    reference_year: Optional[int] = None,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
    fallback_id: Optional[str] = None,
) -> Record:
    """Map one persisted element (any JSON value) to a canonical :class:`Record`.

    ``fallback_id`` names an entry stored without an ``id``; when omitted the
    id is derived from the entry content.
    """
    payload: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    if not isinstance(raw, Mapping):
        logger.debug("Ignoring fields of non-object entry %r", raw)

    raw_id = payload.get("id")
    if raw_id is not None:
        record_id = str(raw_id)
    else:
        record_id = fallback_id or derive_entry_id(raw)
    category = payload.get("category")
    if category is None:
        category = payload.get("store")

    return Record(
        id=record_id,
        occurred_on=resolve_occurred_on(
            payload, reference_year=reference_year, today=today, tz=tz
        ),
        mode=normalize_mode(payload.get("mode")),
        category=normalize_category(category),
        amount=coerce_amount(payload.get("actualAmount")),
        recorded_at=parse_timestamp(payload.get("createdAt")),
    )


def normalize_records(
    raws: Iterable[object],
    *,
    reference_year: Optional[int] = None,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> List[Record]:
    """Normalise every entry, preserving order and count."""
    entries = list(raws)
    fallback_today = today or datetime.now(tz).date()
    return [
        normalize_record(
            raw,
            reference_year=reference_year,
            today=fallback_today,
            tz=tz,
            fallback_id=record_id,
        )
        for raw, record_id in zip(entries, entry_ids(entries))
    ]
