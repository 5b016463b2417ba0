from __future__ import annotations

import json
from datetime import timezone

import pytest

from api.app import create_app
from kakeibo.config import Settings
from kakeibo.exceptions import PersistenceError
from kakeibo.services import LedgerService
from kakeibo.storage import MemoryStorage

from .conftest import FROZEN_NOW


class BrokenStorage(MemoryStorage):
    def set(self, key: str, value: str) -> None:
        raise PersistenceError("read-only volume")


def _client(storage, **settings):
    ledger = LedgerService(storage, tz=timezone.utc, clock=lambda: FROZEN_NOW)
    app = create_app(settings=Settings(**settings), ledger=ledger)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def client(storage):
    return _client(storage)


def _post(client, payload):
    return client.post("/records", data=json.dumps(payload), content_type="application/json")


def test_create_and_summarise(client):
    assert _post(client, {"id": "1", "mode": "expense", "category": "food", "amount": 500, "date": "2024/3/5"}).status_code == 201
    assert _post(client, {"id": "2", "mode": "income", "category": "salary", "amount": 10000, "date": "2024/3/5"}).status_code == 201
    assert _post(client, {"id": "3", "mode": "expense", "category": "food", "amount": 300, "date": "2024/3/6"}).status_code == 201

    response = client.get("/summary?year=2024&month=3")
    assert response.status_code == 200
    body = response.get_json()
    assert body["day_summaries"]["2024-03-05"] == {"income": 10000, "expense": 500}
    assert body["month_summary"] == {"year": 2024, "month": 3, "income": 10000, "expense": 800, "net": 9200}
    assert body["running_balance"]["net"] == 9200
    assert body["category_ranking"]["expense"] == [{"category": "food", "total": 800}]


def test_summary_defaults_to_current_month_and_top_n(client):
    for index, category in enumerate(["a", "b", "c", "d", "e", "f", "g", "h"]):
        _post(client, {"category": category, "amount": 100 * (8 - index)})
    body = client.get("/summary").get_json()
    assert body["reference_date"] == "2024-03-01"
    ranking = body["category_ranking"]["expense"]
    assert [entry["category"] for entry in ranking] == ["a", "b", "c", "d", "e", "f", "other"]
    assert ranking[-1]["total"] == 300

    body = client.get("/summary?top=1").get_json()
    assert body["category_ranking"]["expense"][-1] == {"category": "other", "total": 2800}


def test_list_records_includes_raw_entries(client):
    _post(client, {"id": "odd", "amount": "abc"})
    body = client.get("/records").get_json()
    assert body["items"][0]["actualAmount"] == "abc"
    assert body["records"][0]["amount"] == 0


def test_delete_is_idempotent(client):
    _post(client, {"id": "gone", "amount": 100})
    assert client.delete("/records/gone").status_code == 204
    assert client.delete("/records/gone").status_code == 204
    assert client.get("/records").get_json()["items"] == []


def test_calendar_has_fixed_grid(client):
    _post(client, {"amount": 500, "date": "2024/3/5"})
    body = client.get("/calendar?year=2024&month=3").get_json()
    assert len(body["cells"]) == 42
    fifth = next(cell for cell in body["cells"] if cell["day"] == 5)
    assert fifth["date"] == "2024-03-05"
    assert fifth["summary"] == {"income": 0, "expense": 500}
    assert body["month_summary"]["expense"] == 500


def test_day_records(client):
    _post(client, {"id": "x", "amount": 500, "date": "2024/3/5"})
    body = client.get("/days/2024-03-05").get_json()
    assert [item["id"] for item in body["items"]] == ["x"]
    assert client.get("/days/not-a-day").status_code == 404


@pytest.mark.parametrize("query", ["?year=2024&month=13", "?year=abc&month=1", "?top=-1"])
def test_invalid_query_parameters(client, query):
    assert client.get(f"/summary{query}").status_code == 400


def test_rejects_non_json_body(client):
    response = client.post("/records", data="amount=1", content_type="text/plain")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Validation error"


def test_rejects_invalid_record(client):
    assert _post(client, {"amount": -5}).status_code == 400


def test_storage_failure_surfaces_as_500():
    client = _client(BrokenStorage())
    response = _post(client, {"amount": 100})
    assert response.status_code == 500
    assert response.get_json()["error"] == "Persistence error"


def test_malformed_storage_reads_as_empty():
    client = _client(MemoryStorage({"records": "not json"}))
    body = client.get("/summary?year=2024&month=3").get_json()
    assert body["record_count"] == 0


def test_create_app_with_data_dir(tmp_path):
    app = create_app(tmp_path, settings=Settings())
    app.config["TESTING"] = True
    response = app.test_client().post(
        "/records", data=json.dumps({"amount": 10}), content_type="application/json"
    )
    assert response.status_code == 201
    assert (tmp_path / "records.json").exists()
