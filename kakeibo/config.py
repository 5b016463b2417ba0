"""Environment-driven settings and logging setup for kakeibo entry points.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached here, once, by the CLI or the API factory.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import IO, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ValidationError

_PKG_LOGGER_NAME = "kakeibo"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_CONFIGURED = False

DEFAULT_STORAGE_KEY = "records"
DEFAULT_TOP_N = 6


@dataclass(frozen=True)
class Settings:
    env: str = "prod"
    data_dir: Path = Path("data")
    storage_key: str = DEFAULT_STORAGE_KEY
    top_n: int = DEFAULT_TOP_N
    timezone: Optional[str] = None
    allowed_origins: Tuple[str, ...] = ()
    log_level: str = "INFO"

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "development"}

    def tzinfo(self) -> Optional[tzinfo]:
        """Zone used to turn instants into calendar dates; ``None`` means system local."""
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValidationError(f"Unknown timezone {self.timezone!r}") from exc


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    raw_top = env.get("KAKEIBO_TOP_N", "").strip()
    try:
        top_n = int(raw_top) if raw_top else DEFAULT_TOP_N
    except ValueError as exc:
        raise ValidationError("KAKEIBO_TOP_N must be an integer") from exc
    if top_n < 0:
        raise ValidationError("KAKEIBO_TOP_N must not be negative")

    origins = tuple(
        origin.strip()
        for origin in env.get("KAKEIBO_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    )
    return Settings(
        env=env.get("KAKEIBO_ENV", "prod").strip().lower() or "prod",
        data_dir=Path(env.get("KAKEIBO_DATA_DIR", "data")),
        storage_key=env.get("KAKEIBO_STORAGE_KEY", DEFAULT_STORAGE_KEY).strip()
        or DEFAULT_STORAGE_KEY,
        top_n=top_n,
        timezone=env.get("KAKEIBO_TIMEZONE", "").strip() or None,
        allowed_origins=origins,
        log_level=env.get("KAKEIBO_LOG_LEVEL", "INFO").strip() or "INFO",
    )


def _parse_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    candidate = level.strip().upper()
    if candidate.isdigit():
        return int(candidate)
    numeric = getattr(logging, candidate, None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def configure_logging(level: Union[int, str] = logging.INFO, *, stream: IO[str] = sys.stderr) -> None:
    """Attach a single stream handler to the package logger; later calls only adjust the level."""
    global _CONFIGURED
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    logger.setLevel(_parse_level(level))
    if _CONFIGURED:
        return
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
    logger.addHandler(handler)
    _CONFIGURED = True
