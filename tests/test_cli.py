"""Tests for the console interface."""

from __future__ import annotations

import re

import pytest

from budget_calendar.cli import main


@pytest.fixture()
def run(tmp_path, capsys):
    def _run(*argv: str):
        code = main(["--data-dir", str(tmp_path / "data"), *argv])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return _run


class TestTransactions:
    def test_add_and_list(self, run) -> None:
        code, out, _ = run("transaction", "add", "2025-03-01", "100", "--income", "--description", "Salary")
        assert code == 0
        assert "+100.00" in out

        code, out, _ = run("transaction", "list")
        assert code == 0
        assert "Found 1 transactions" in out
        assert "Salary" in out

    def test_empty_list(self, run) -> None:
        code, out, _ = run("transaction", "list")
        assert code == 0
        assert "No transactions found." in out

    def test_unknown_id(self, run) -> None:
        code, _, err = run("transaction", "delete", "missing")
        assert code == 1
        assert "not found" in err

    def test_bad_date_is_rejected_by_parser(self, run) -> None:
        with pytest.raises(SystemExit):
            run("transaction", "add", "2025-02-30", "10")


class TestBudget:
    def test_invalid_day_of_month(self, run) -> None:
        code, _, err = run("budget", "add", "Rent", "40", "monthly", "2025-01-15", "--day-of-month", "40")
        assert code == 1
        assert "Validation error" in err

    def test_add_and_list(self, run) -> None:
        code, out, _ = run("budget", "add", "Rent", "40", "monthly", "2025-01-15", "--last-day")
        assert code == 0
        assert "monthly on last day" in out

        code, out, _ = run("budget", "list")
        assert "Found 1 budget items" in out


class TestViews:
    def test_calendar_range(self, run) -> None:
        run("transaction", "add", "2025-03-01", "100", "--income")
        run("transaction", "add", "2025-03-01", "30")
        run("transaction", "add", "2025-03-02", "20")

        code, out, _ = run("calendar", "--start", "2025-03-01", "--end", "2025-03-02")
        assert code == 0
        assert "2025-03-01  income 100.00  expense 30.00  EOD 70.00" in out
        assert "2025-03-02  income 0.00  expense 20.00  EOD 50.00" in out

    def test_calendar_needs_a_range(self, run) -> None:
        code, _, err = run("calendar")
        assert code == 1
        assert "--month" in err

    def test_calendar_month_with_budget_item(self, run) -> None:
        run("budget", "add", "Rent", "40", "monthly", "2025-01-15", "--day-of-month", "31")

        code, out, _ = run("calendar", "--month", "2025-02")
        assert code == 0
        assert "2025-02-28  income 0.00  expense 40.00  EOD -40.00" in out

    def test_cashflow(self, run) -> None:
        run("transaction", "add", "2025-03-01", "100", "--income")

        code, out, _ = run("cashflow", "--month", "2025-03")
        assert code == 0
        assert "Cashflow for 2025-03:" in out
        assert out.count("balance") == 31


def _record_id(out: str) -> str:
    return re.search(r"\[([^\]]+)\]", out).group(1)


class TestOwnership:
    @pytest.mark.parametrize(
        "command",
        [
            ("delete",),
            ("exclude",),
            ("edit", "--description", "Stolen"),
        ],
    )
    def test_other_user_cannot_change_transaction(self, run, command) -> None:
        _, out, _ = run("transaction", "add", "2025-03-01", "100", "--description", "Salary")
        record_id = _record_id(out)

        code, _, err = run("--user", "intruder", "transaction", command[0], record_id, *command[1:])
        assert code == 1
        assert "not found" in err

        _, out, _ = run("transaction", "list")
        assert "Found 1 transactions" in out
        assert "Salary" in out
        assert "excluded" not in out

    @pytest.mark.parametrize(
        "command",
        [
            ("delete",),
            ("exclude",),
            ("edit", "--name", "Stolen"),
            ("occurrences", "2025-02-01", "2025-02-28"),
        ],
    )
    def test_other_user_cannot_reach_budget_item(self, run, command) -> None:
        _, out, _ = run("budget", "add", "Rent", "40", "monthly", "2025-01-15", "--last-day")
        record_id = _record_id(out)

        code, out, err = run("--user", "intruder", "budget", command[0], record_id, *command[1:])
        assert code == 1
        assert "not found" in err
        assert "2025-02-28" not in out

        _, out, _ = run("budget", "list")
        assert "Found 1 budget items" in out
        assert "Rent" in out
        assert "excluded" not in out

    def test_owner_can_delete(self, run) -> None:
        _, out, _ = run("--user", "alice", "transaction", "add", "2025-03-01", "100")
        record_id = _record_id(out)

        code, out, _ = run("--user", "alice", "transaction", "delete", record_id)
        assert code == 0
        assert f"Transaction {record_id} deleted." in out
