"""Flask REST API exposing the budget calendar services."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from budget_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budget_core.models import BUDGET_OCCURRENCE, TRANSACTION
from budget_core.services import BudgetItemService, CalendarService, TransactionService
from budget_core.storage import JSONStorage
from budget_core.validators import validate_month

USER_HEADER = "X-User-Id"


def create_app(data_dir: Optional[Path] = None) -> Flask:
    app = Flask(__name__)

    env_name = os.getenv("BUDGET_CALENDAR_ENV", "prod").lower()
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = os.getenv("BUDGET_CALENDAR_ALLOWED_ORIGINS")
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    storage = JSONStorage(Path(data_dir or os.getenv("BUDGET_CALENDAR_DATA_DIR", "data")))
    transaction_service = TransactionService(storage)
    budget_service = BudgetItemService(storage)
    calendar = CalendarService(transaction_service, budget_service)

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

    def _user_id() -> str:
        user_id = (request.headers.get(USER_HEADER) or "").strip()
        if not user_id:
            raise ValidationError(f"{USER_HEADER} header is required")
        return user_id

    def _owned(record: Any) -> Any:
        # Records of other users are reported as missing rather than forbidden.
        if record.user_id != _user_id():
            raise RecordNotFoundError(f"{type(record).__name__} {record.id} not found")
        return record

    def _required_arg(name: str) -> str:
        value = request.args.get(name)
        if not value:
            raise ValidationError(f"Query parameter '{name}' is required")
        return value

    def _exclusion_flag() -> bool:
        if not request.get_data():
            return True
        excluded = _json_body().get("excluded", True)
        if not isinstance(excluded, bool):
            raise ValidationError("excluded must be a boolean")
        return excluded

    @app.get("/transactions")
    def list_transactions():
        transactions = transaction_service.list(
            _user_id(),
            start=request.args.get("start") or None,
            end=request.args.get("end") or None,
        )
        return _success({"items": [transaction.to_dict() for transaction in transactions]})

    @app.post("/transactions")
    def create_transaction():
        transaction = transaction_service.add(_user_id(), _json_body())
        return _success(transaction.to_dict(), 201)

    @app.get("/transactions/<transaction_id>")
    def get_transaction(transaction_id: str):
        transaction = _owned(transaction_service.get(transaction_id))
        return _success(transaction.to_dict())

    @app.put("/transactions/<transaction_id>")
    def update_transaction(transaction_id: str):
        _owned(transaction_service.get(transaction_id))
        transaction = transaction_service.update(transaction_id, _json_body())
        return _success(transaction.to_dict())

    @app.delete("/transactions/<transaction_id>")
    def delete_transaction(transaction_id: str):
        _owned(transaction_service.get(transaction_id))
        transaction_service.delete(transaction_id)
        return _success({}, 204)

    @app.post("/transactions/<transaction_id>/exclude")
    def exclude_transaction(transaction_id: str):
        _owned(transaction_service.get(transaction_id))
        transaction = calendar.exclude(TRANSACTION, transaction_id, _exclusion_flag())
        return _success(transaction.to_dict())

    @app.get("/budget-items")
    def list_budget_items():
        items = budget_service.list(_user_id())
        return _success({"items": [item.to_dict() for item in items]})

    @app.post("/budget-items")
    def create_budget_item():
        item = budget_service.add(_user_id(), _json_body())
        return _success(item.to_dict(), 201)

    @app.get("/budget-items/<item_id>")
    def get_budget_item(item_id: str):
        item = _owned(budget_service.get(item_id))
        return _success(item.to_dict())

    @app.put("/budget-items/<item_id>")
    def update_budget_item(item_id: str):
        _owned(budget_service.get(item_id))
        item = budget_service.update(item_id, _json_body())
        return _success(item.to_dict())

    @app.delete("/budget-items/<item_id>")
    def delete_budget_item(item_id: str):
        _owned(budget_service.get(item_id))
        budget_service.delete(item_id)
        return _success({}, 204)

    @app.post("/budget-items/<item_id>/exclude")
    def exclude_budget_item(item_id: str):
        _owned(budget_service.get(item_id))
        item = calendar.exclude(BUDGET_OCCURRENCE, item_id, _exclusion_flag())
        return _success(item.to_dict())

    @app.get("/budget-items/<item_id>/occurrences")
    def list_occurrences(item_id: str):
        _owned(budget_service.get(item_id))
        occurrences = calendar.occurrences(item_id, _required_arg("start"), _required_arg("end"))
        return _success({"items": [event.to_dict() for event in occurrences]})

    @app.get("/calendar")
    def calendar_range():
        summaries = calendar.summaries(_user_id(), _required_arg("start"), _required_arg("end"))
        return _success({"days": [summary.to_dict() for summary in summaries]})

    @app.get("/calendar/<int:year>/<int:month>")
    def calendar_month(year: int, month: int):
        summaries = calendar.month(_user_id(), year, month)
        return _success({"days": [summary.to_dict() for summary in summaries]})

    @app.get("/cashflow")
    def month_cashflow():
        raw_month = request.args.get("month")
        if raw_month:
            year, month = validate_month(raw_month, "month")
        else:
            today = date.today()
            year, month = today.year, today.month
        points = calendar.cashflow(_user_id(), year, month)
        return _success({
            "month": f"{year:04d}-{month:02d}",
            "points": [point.to_dict() for point in points],
        })

    return app
