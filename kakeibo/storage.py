"""Key-value blob persistence used by the kakeibo ledger services.

Storage backends know nothing about the ledger schema: they keep opaque
strings under string keys.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class JSONFileStorage:
    """File-based blob storage with crash-safe writes, one ``<key>.json`` per key."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("%s is not valid UTF-8; undecodable bytes replaced", path)
            return data.decode("utf-8", errors="replace")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
            # Use replace for atomic move on POSIX; ensures crash-safe persistence.
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError(f"Unable to remove {path}") from exc

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.fullmatch(key) or key.startswith("."):
            raise PersistenceError(f"Invalid storage key {key!r}")
        return self._base_path / f"{key}.json"


class MemoryStorage:
    """Dict-backed storage for tests and embedding."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._blobs: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def remove(self, key: str) -> None:
        self._blobs.pop(key, None)
