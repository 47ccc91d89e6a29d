"""
Abstract Storage Interface

DESIGN DECISION: Local persistence sits behind an abstract interface.
This allows us to:
1. Keep the JSON-file cache for the app
2. Use in-memory storage for testing
3. Swap in something else (SQLite, browser storage bridge) later

Storage holds exactly two slots: the party list and the transaction list.
Both are stored as plain wire-format dicts so the cache stays readable and
survives model changes; the ledger store normalizes on load.
"""

from abc import ABC, abstractmethod
from typing import Optional


PARTIES_SLOT = "cashflow_parties"
TRANSACTIONS_SLOT = "cashflow_transactions"


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the local ledger cache.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def read_slot(self, slot: str) -> Optional[list]:
        """
        Read one slot.

        Args:
            slot: Slot name (PARTIES_SLOT or TRANSACTIONS_SLOT)

        Returns:
            The stored list, or None if the slot is absent or unreadable
        """
        pass

    @abstractmethod
    def write_slot(self, slot: str, records: list[dict]) -> None:
        """
        Overwrite one slot.

        Args:
            slot: Slot name
            records: JSON-serializable records

        Raises:
            StorageError: If the write fails
        """
        pass


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed storage for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, list]] = None):
        self.slots: dict[str, list] = dict(initial or {})
        self.write_count = 0

    def read_slot(self, slot: str) -> Optional[list]:
        records = self.slots.get(slot)
        return list(records) if records is not None else None

    def write_slot(self, slot: str, records: list[dict]) -> None:
        self.slots[slot] = list(records)
        self.write_count += 1


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
