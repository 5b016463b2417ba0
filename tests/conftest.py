"""Shared fixtures for the kakeibo test-suite.

All services run on a frozen clock in UTC so date resolution does not depend
on the machine running the tests.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from kakeibo.services import LedgerService
from kakeibo.storage import MemoryStorage

FROZEN_NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)
FROZEN_TODAY = date(2024, 3, 20)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``KAKEIBO_*`` variables from leaking into tests."""
    for name in (
        "KAKEIBO_ENV",
        "KAKEIBO_ALLOWED_ORIGINS",
        "KAKEIBO_DATA_DIR",
        "KAKEIBO_STORAGE_KEY",
        "KAKEIBO_TOP_N",
        "KAKEIBO_TIMEZONE",
        "KAKEIBO_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def ledger(storage: MemoryStorage) -> LedgerService:
    return LedgerService(storage, tz=timezone.utc, clock=lambda: FROZEN_NOW)


@pytest.fixture
def march_entries():
    return [
        {"id": "1", "date": "2024/3/5", "mode": "expense", "category": "food", "actualAmount": 500},
        {"id": "2", "date": "2024/3/5", "mode": "income", "category": "salary", "actualAmount": 10000},
        {"id": "3", "date": "2024/3/6", "mode": "expense", "category": "food", "actualAmount": 300},
    ]
