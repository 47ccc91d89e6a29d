"""
Ledger Store

The single owner of the in-memory parties and transactions for a session.

DESIGN DECISION: Every mutation writes the affected slot to local storage
right after the in-memory change. Storage is a convenience cache: if the
process dies between the two, the next pull from the remote sheet heals it.

Listeners subscribed with subscribe() run after every change to the
transaction set. The party reconciler hooks in here.
"""

from typing import Callable, Iterable, Optional

import structlog
from pydantic import ValidationError

from cashflow.models.ledger import MAX_NAME_LENGTH, Party, Transaction
from cashflow.services.storage import (
    PARTIES_SLOT,
    TRANSACTIONS_SLOT,
    LedgerStorageInterface,
)
from cashflow.validation import TransactionValidator, new_id


logger = structlog.get_logger(__name__)

DEFAULT_PARTY_NAMES = ["Abhishek", "Abhinav"]

TransactionsListener = Callable[["LedgerStore"], None]


class LedgerStore:
    """
    In-memory ledger backed by a LedgerStorageInterface.

    Transactions are kept in insertion order (newest insert first);
    replace_transactions() re-sorts by date descending.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[TransactionValidator] = None,
        default_parties: Optional[list[str]] = None,
    ):
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._default_parties = (
            default_parties if default_parties is not None else DEFAULT_PARTY_NAMES
        )
        self._parties: list[Party] = []
        self._transactions: list[Transaction] = []
        self._listeners: list[TransactionsListener] = []

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def parties(self) -> list[Party]:
        return list(self._parties)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def party_names(self) -> list[str]:
        return [party.name for party in self._parties]

    def find_party(self, name: str) -> Optional[Party]:
        """Case-insensitive party lookup."""
        key = name.strip().lower()
        for party in self._parties:
            if party.name.lower() == key:
                return party
        return None

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for tx in self._transactions:
            if tx.id == transaction_id:
                return tx
        return None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """
        Read both slots from storage.

        Missing parties fall back to the seed set; missing transactions
        to an empty list.
        """
        raw_parties = self._storage.read_slot(PARTIES_SLOT)
        if raw_parties is None:
            self._parties = [
                Party(id=str(position), name=name)
                for position, name in enumerate(self._default_parties, start=1)
            ]
        else:
            self._parties = []
            for raw in raw_parties:
                try:
                    party = Party.model_validate(raw)
                except ValidationError:
                    logger.warning("party_record_skipped", record=raw)
                    continue
                if self.find_party(party.name) is None:
                    self._parties.append(party)

        raw_transactions = self._storage.read_slot(TRANSACTIONS_SLOT)
        if raw_transactions is None:
            self._transactions = []
        else:
            # Keep stored order; only replace_transactions re-sorts
            self._transactions = []
            for index, raw in enumerate(raw_transactions):
                tx = self._validator.normalize_record(raw, index=index)
                if tx is not None:
                    self._transactions.append(tx)

        logger.info(
            "ledger_loaded",
            parties=len(self._parties),
            transactions=len(self._transactions),
        )
        self._notify()

    def subscribe(self, listener: TransactionsListener) -> Callable[[], None]:
        """
        Register a listener for transaction-set changes.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Transaction mutations
    # -------------------------------------------------------------------------

    def add_transaction(self, transaction: Transaction) -> Transaction:
        """Insert at the head of the sequence."""
        self._transactions.insert(0, transaction)
        self._persist_transactions()
        self._notify()
        return transaction

    def delete_transaction(self, transaction_id: str) -> bool:
        """
        Remove a transaction by id.

        Returns False (and writes nothing) if no such transaction exists.
        """
        remaining = [tx for tx in self._transactions if tx.id != transaction_id]
        if len(remaining) == len(self._transactions):
            return False

        self._transactions = remaining
        self._persist_transactions()
        self._notify()
        return True

    def replace_transactions(self, records: Iterable) -> list[Transaction]:
        """
        Install a new transaction set wholesale.

        Every element is normalized; non-record elements are dropped.
        The set is sorted by date descending.
        """
        self._transactions = self._validator.normalize_records(records)
        self._persist_transactions()
        self._notify()
        return self.transactions

    # -------------------------------------------------------------------------
    # Party mutations
    # -------------------------------------------------------------------------

    def add_party(self, name: str) -> Optional[Party]:
        """
        Add a party by name.

        Returns None if the name is blank, too long or already taken
        (case-insensitive).
        """
        name = name.strip()
        if not name or self.find_party(name) is not None:
            return None
        if len(name) > MAX_NAME_LENGTH:
            logger.warning("party_name_too_long", length=len(name))
            return None

        party = Party(id=new_id(), name=name)
        self._parties.append(party)
        self._persist_parties()
        return party

    def add_parties(self, parties: Iterable[Party]) -> list[Party]:
        """Bulk insert, skipping names that already exist."""
        added = []
        for party in parties:
            if self.find_party(party.name) is None:
                self._parties.append(party)
                added.append(party)

        if added:
            self._persist_parties()
        return added

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _persist_parties(self) -> None:
        self._storage.write_slot(
            PARTIES_SLOT,
            [party.model_dump(mode="json") for party in self._parties],
        )

    def _persist_transactions(self) -> None:
        self._storage.write_slot(
            TRANSACTIONS_SLOT,
            [tx.to_wire() for tx in self._transactions],
        )

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
