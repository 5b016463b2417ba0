"""Validation and coercion helpers shared across kakeibo services."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Tuple

from .exceptions import ValidationError
from .models import Mode, UNCATEGORIZED

YEN_SUFFIX = "円"
MIN_YEAR = 1
MAX_YEAR = 9999
# Amounts needing more digits than this are treated as corrupt.
MAX_AMOUNT_DIGITS = 64


def _quantize_whole_yen(amount: Decimal) -> int:
    """Round to whole yen using HALF_UP; yen has no fractional sub-unit."""
    with localcontext() as ctx:
        ctx.prec = MAX_AMOUNT_DIGITS
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def coerce_amount(raw: object) -> int:
    """Convert a stored amount into a non-negative whole-yen integer.

    Anything that is not a finite number counts as zero, so a single corrupt
    record never aborts aggregation of the rest.
    """
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, int):
        return raw if raw > 0 else 0
    if isinstance(raw, (float, Decimal)):
        candidate = Decimal(str(raw))
    elif isinstance(raw, str):
        text = raw.strip().replace(",", "")
        if text.endswith(YEN_SUFFIX):
            text = text[: -len(YEN_SUFFIX)].strip()
        if not text:
            return 0
        try:
            candidate = Decimal(text)
        except InvalidOperation:
            return 0
    else:
        return 0

    if not candidate.is_finite() or candidate <= 0:
        return 0
    try:
        return _quantize_whole_yen(candidate)
    except InvalidOperation:
        return 0


def normalize_mode(raw: object) -> Mode:
    if isinstance(raw, Mode):
        return raw
    if isinstance(raw, str) and raw.strip().lower() == Mode.INCOME.value:
        return Mode.INCOME
    return Mode.EXPENSE


def normalize_category(raw: object) -> str:
    if raw is None:
        return UNCATEGORIZED
    trimmed = str(raw).strip()
    return trimmed or UNCATEGORIZED


def validate_mode(value: object) -> Mode:
    """Strict variant of :func:`normalize_mode` for front-end input."""
    if isinstance(value, Mode):
        return value
    if not isinstance(value, str):
        raise ValidationError("mode must be a string")
    canonical = value.strip().lower()
    try:
        return Mode(canonical)
    except ValueError as exc:
        allowed = ", ".join(mode.value for mode in Mode)
        raise ValidationError(f"mode must be one of: {allowed}") from exc


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_month(year: object, month: object) -> Tuple[int, int]:
    """Validate a calendar (year, month) pair supplied by a front-end."""
    try:
        year_value = int(year)  # type: ignore[arg-type]
        month_value = int(month)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("year and month must be integers") from exc
    if not MIN_YEAR <= year_value <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    if not 1 <= month_value <= 12:
        raise ValidationError("month must be between 1 and 12")
    return year_value, month_value


def validate_top_n(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        top_n = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("top must be an integer") from exc
    if top_n < 0:
        raise ValidationError("top must not be negative")
    return top_n


def format_display_amount(mode: Mode, amount: int) -> str:
    """Human-formatted amount, e.g. ``-1,234円``; derived, never authoritative."""
    sign = "+" if mode is Mode.INCOME else "-"
    return f"{sign}{amount:,}{YEN_SUFFIX}"
