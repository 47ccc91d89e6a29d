"""Shared fixtures for the CashFlow Ledger tests."""

import pytest

from cashflow.ledger import LedgerStore
from cashflow.services.storage import InMemoryLedgerStorage
from tests.helpers import FakeSheet


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def store(storage: InMemoryLedgerStorage) -> LedgerStore:
    ledger = LedgerStore(storage=storage, default_parties=["A", "B"])
    ledger.load()
    return ledger


@pytest.fixture
def sheet() -> FakeSheet:
    return FakeSheet()
