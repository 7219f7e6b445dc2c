"""Shared fixtures for duo-ledger tests."""

from datetime import date
from decimal import Decimal

import pytest

from duo_ledger.config import Settings
from duo_ledger.db import Database
from duo_ledger.models import Party, Transaction
from duo_ledger.service import LedgerService


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def settings(db_path):
    """Create test settings pointing at a temporary database."""
    return Settings(
        database_path=db_path,
        party_a_name="Alice",
        party_b_name="Bob",
        currency="SGD",
    )


@pytest.fixture
def db(db_path):
    """Create a temporary database."""
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def service(settings, db):
    """Create a LedgerService instance."""
    return LedgerService(settings, db)


def make_transaction(
    amount: str,
    payer: Party,
    category: str = "Groceries",
    percent_a: float | None = None,
    percent_b: float | None = None,
) -> Transaction:
    """Build an unsaved ledger row for testing."""
    return Transaction(
        amount=Decimal(amount),
        payer=payer,
        category=category,
        percent_a=percent_a,
        percent_b=percent_b,
        spent_on=date(2025, 1, 15),
    )
