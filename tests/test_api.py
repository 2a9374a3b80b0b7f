"""Tests for the Flask REST API."""

from __future__ import annotations

import pytest

from api.app import create_app

HEADERS = {"X-User-Id": "u1"}


@pytest.fixture()
def client(tmp_path):
    app = create_app(tmp_path / "data")
    app.config.update(TESTING=True)
    return app.test_client()


def _add_transaction(client, **overrides):
    payload = {"date": "2025-03-01", "amount": "100", "isIncome": True, "description": "Salary"}
    payload.update(overrides)
    response = client.post("/transactions", json=payload, headers=HEADERS)
    assert response.status_code == 201
    return response.get_json()


def _add_budget_item(client, **overrides):
    payload = {
        "name": "Rent",
        "amount": "40",
        "frequency": "monthly",
        "startDate": "2025-01-15",
        "dayOfMonth": 31,
    }
    payload.update(overrides)
    response = client.post("/budget-items", json=payload, headers=HEADERS)
    assert response.status_code == 201
    return response.get_json()


class TestTransactionsApi:
    def test_user_header_required(self, client) -> None:
        response = client.get("/transactions")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation error"

    def test_create_and_list(self, client) -> None:
        created = _add_transaction(client)
        response = client.get("/transactions", headers=HEADERS)

        assert created["amount"] == "100.00"
        assert created["userId"] == "u1"
        assert response.get_json()["items"] == [created]

    def test_other_users_records_are_hidden(self, client) -> None:
        created = _add_transaction(client)
        response = client.get(f"/transactions/{created['id']}", headers={"X-User-Id": "u2"})

        assert response.status_code == 404

    def test_invalid_payload(self, client) -> None:
        response = client.post(
            "/transactions",
            json={"date": "2025-03-01", "amount": "-3"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_non_json_body(self, client) -> None:
        response = client.post("/transactions", data="amount=3", headers=HEADERS)
        assert response.status_code == 400

    def test_update_and_delete(self, client) -> None:
        created = _add_transaction(client)
        updated = client.put(
            f"/transactions/{created['id']}", json={"description": "Bonus"}, headers=HEADERS
        )
        assert updated.get_json()["description"] == "Bonus"

        deleted = client.delete(f"/transactions/{created['id']}", headers=HEADERS)
        assert deleted.status_code == 204
        assert client.get(f"/transactions/{created['id']}", headers=HEADERS).status_code == 404

    def test_exclude_defaults_to_true(self, client) -> None:
        created = _add_transaction(client)
        response = client.post(f"/transactions/{created['id']}/exclude", headers=HEADERS)

        assert response.get_json()["excludedFromEOD"] is True

        restored = client.post(
            f"/transactions/{created['id']}/exclude", json={"excluded": False}, headers=HEADERS
        )
        assert restored.get_json()["excludedFromEOD"] is False


class TestBudgetItemsApi:
    def test_invalid_frequency(self, client) -> None:
        response = client.post(
            "/budget-items",
            json={"name": "Gym", "amount": "10", "frequency": "hourly", "startDate": "2025-01-01"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_occurrences(self, client) -> None:
        item = _add_budget_item(client)
        response = client.get(
            f"/budget-items/{item['id']}/occurrences",
            query_string={"start": "2025-02-01", "end": "2025-02-28"},
            headers=HEADERS,
        )

        items = response.get_json()["items"]
        assert [event["date"] for event in items] == ["2025-02-28"]
        assert items[0]["source"] == "budget-occurrence"

    def test_occurrences_require_range(self, client) -> None:
        item = _add_budget_item(client)
        response = client.get(f"/budget-items/{item['id']}/occurrences", headers=HEADERS)

        assert response.status_code == 400


class TestCalendarApi:
    def test_range(self, client) -> None:
        _add_transaction(client)
        _add_transaction(client, amount="30", isIncome=False, description="Groceries")
        _add_transaction(client, date="2025-03-02", amount="20", isIncome=False)

        response = client.get(
            "/calendar", query_string={"start": "2025-03-01", "end": "2025-03-02"}, headers=HEADERS
        )
        days = response.get_json()["days"]

        assert response.status_code == 200
        assert [day["runningBalance"] for day in days] == ["70.00", "50.00"]
        assert [event["description"] for event in days[0]["events"]] == ["Salary", "Groceries"]

    def test_reversed_range(self, client) -> None:
        response = client.get(
            "/calendar", query_string={"start": "2025-03-02", "end": "2025-03-01"}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_month(self, client) -> None:
        _add_budget_item(client)
        response = client.get("/calendar/2025/2", headers=HEADERS)
        days = response.get_json()["days"]

        assert len(days) == 28
        assert days[-1]["totalExpense"] == "40.00"

    def test_bad_month(self, client) -> None:
        assert client.get("/calendar/2025/13", headers=HEADERS).status_code == 400

    def test_excluded_item_keeps_balance(self, client) -> None:
        item = _add_budget_item(client)
        client.post(f"/budget-items/{item['id']}/exclude", headers=HEADERS)
        days = client.get("/calendar/2025/2", headers=HEADERS).get_json()["days"]

        assert days[-1]["runningBalance"] == "0.00"
        assert days[-1]["events"][0]["excludedFromEOD"] is True

    def test_cashflow(self, client) -> None:
        _add_transaction(client)
        response = client.get("/cashflow", query_string={"month": "2025-03"}, headers=HEADERS)
        payload = response.get_json()

        assert payload["month"] == "2025-03"
        assert len(payload["points"]) == 31
        assert payload["points"][-1]["balance"] == "100.00"

    def test_cashflow_bad_month(self, client) -> None:
        response = client.get("/cashflow", query_string={"month": "March"}, headers=HEADERS)
        assert response.status_code == 400

    def test_last_representable_month(self, client) -> None:
        _add_budget_item(client, startDate="9999-01-01", dayOfMonth=31)
        response = client.get("/calendar/9999/12", headers=HEADERS)
        days = response.get_json()["days"]

        assert response.status_code == 200
        assert len(days) == 31
        assert days[-1]["date"] == "9999-12-31"
        assert days[-1]["runningBalance"] == "-40.00"

    def test_range_ending_on_last_representable_day(self, client) -> None:
        _add_transaction(client, date="9999-12-31")
        response = client.get(
            "/calendar", query_string={"start": "9999-12-30", "end": "9999-12-31"}, headers=HEADERS
        )

        assert response.status_code == 200
        assert [day["runningBalance"] for day in response.get_json()["days"]] == ["0.00", "100.00"]
