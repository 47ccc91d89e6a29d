"""
Storage Services Package

Provides the abstract interface and implementations for the local ledger
cache. The JSON file backend is used by the app; the in-memory one by tests.
"""

from cashflow.services.storage.interface import (
    PARTIES_SLOT,
    TRANSACTIONS_SLOT,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from cashflow.services.storage.json_file import JsonFileLedgerStorage

__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    "PARTIES_SLOT",
    "TRANSACTIONS_SLOT",
    # Exceptions
    "StorageError",
    # Implementations
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
]
