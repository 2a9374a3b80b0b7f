"""Shared fixtures for budget calendar tests."""

from __future__ import annotations

import pytest

from budget_core.services import BudgetItemService, CalendarService, TransactionService
from budget_core.storage import JSONStorage


@pytest.fixture()
def storage(tmp_path):
    return JSONStorage(tmp_path / "data")


@pytest.fixture()
def transactions(storage):
    return TransactionService(storage)


@pytest.fixture()
def budget_items(storage):
    return BudgetItemService(storage)


@pytest.fixture()
def calendar(transactions, budget_items):
    return CalendarService(transactions, budget_items)
