"""Flask REST API exposing the kakeibo ledger services."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from kakeibo.config import Settings, configure_logging, load_settings
from kakeibo.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from kakeibo.models import day_key
from kakeibo.services import LedgerService
from kakeibo.storage import JSONFileStorage, KeyValueStorage
from kakeibo.validators import validate_month, validate_top_n


def create_app(
    data_dir: Optional[Path] = None,
    *,
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
    ledger: Optional[LedgerService] = None,
) -> Flask:
    app = Flask(__name__)
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if settings.is_dev:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif settings.allowed_origins:
        CORS(
            app,
            resources={r"/*": {"origins": list(settings.allowed_origins)}},
            supports_credentials=True,
        )
    else:
        CORS(app)

    if ledger is None:
        storage = storage or JSONFileStorage(Path(data_dir or settings.data_dir))
        ledger = LedgerService(storage, settings.storage_key, tz=settings.tzinfo())

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _requested_month() -> date:
        today = ledger.today()
        year, month = validate_month(
            request.args.get("year", today.year), request.args.get("month", today.month)
        )
        return date(year, month, 1)

    @app.get("/records")
    def list_records():
        ledger.reload()
        return _success({
            "items": ledger.raw_records(),
            "records": ledger.snapshot()["records"],
        })

    @app.post("/records")
    def create_record():
        payload = _json_body()
        entry = ledger.append(payload)
        return _success(entry, 201)

    @app.delete("/records/<record_id>")
    def delete_record(record_id: str):
        ledger.remove(record_id)
        return _success({}, 204)

    @app.get("/summary")
    def summary():
        reference = _requested_month()
        raw_top = request.args.get("top")
        top_n = validate_top_n(raw_top) if raw_top is not None else settings.top_n
        ledger.reload()
        view = ledger.aggregate(reference, top_n=top_n)
        return _success(view.to_dict())

    @app.get("/calendar")
    def calendar():
        reference = _requested_month()
        ledger.reload()
        view = ledger.aggregate(reference)
        cells = []
        for cell, day_summary in ledger.calendar(reference.year, reference.month):
            item = cell.to_dict()
            item["summary"] = day_summary.to_dict() if day_summary else None
            cells.append(item)
        return _success({
            "year": reference.year,
            "month": reference.month,
            "cells": cells,
            "month_summary": view.month_summary.to_dict(),
            "running_balance": view.running_balance.to_dict(),
        })

    @app.get("/days/<day>")
    def day_records(day: str):
        try:
            requested = datetime.strptime(day, "%Y-%m-%d").date()
        except ValueError as exc:
            raise RecordNotFoundError(f"No such day {day}") from exc
        ledger.reload()
        records = ledger.day_records(requested)
        return _success({
            "date": day_key(requested),
            "items": [record.to_dict() for record in records],
        })

    return app
