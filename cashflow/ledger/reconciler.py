"""
Party Reconciler

Makes sure every name used in a transaction has a party record.
Names typed into the form, or rows added straight into the sheet, would
otherwise show up in balances without being selectable as a party.

The reconciler only ever adds parties. Running it twice on the same
transaction set changes nothing the second time.
"""

from typing import Callable, Iterable, Optional

import structlog

from cashflow.models.ledger import MAX_NAME_LENGTH, Party, Transaction
from cashflow.validation import new_id


logger = structlog.get_logger(__name__)


def missing_party_names(
    transactions: Iterable[Transaction],
    parties: Iterable[Party],
) -> list[str]:
    """
    Distinct trimmed names referenced by transactions but unknown as parties.

    Comparison is case-insensitive; the first spelling seen wins.
    Order follows first appearance in the transaction list. Names that
    cannot be a party (over MAX_NAME_LENGTH) are skipped.
    """
    known = {party.name.strip().lower() for party in parties}
    missing: list[str] = []

    for tx in transactions:
        for name in (tx.sender, tx.recipient):
            name = name.strip()
            key = name.lower()
            if not name or key in known:
                continue
            if len(name) > MAX_NAME_LENGTH:
                logger.warning("party_name_skipped", length=len(name))
                known.add(key)
                continue
            known.add(key)
            missing.append(name)

    return missing


def reconcile_parties(
    transactions: Iterable[Transaction],
    parties: Iterable[Party],
) -> list[Party]:
    """New Party records for every missing name."""
    return [
        Party(id=new_id(), name=name)
        for name in missing_party_names(transactions, parties)
    ]


class PartyReconciler:
    """
    Runs reconcile_parties on a LedgerStore whenever its transactions change.

    Usage:
        reconciler = PartyReconciler(on_added=audit.log_parties_reconciled)
        reconciler.attach(store)
    """

    def __init__(self, on_added: Optional[Callable[[list[str]], None]] = None):
        self._on_added = on_added
        self._detach: Optional[Callable[[], None]] = None

    def attach(self, store) -> None:
        """Subscribe to the store and reconcile its current state once."""
        self.detach()
        self._detach = store.subscribe(self.run)
        self.run(store)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def run(self, store) -> list[Party]:
        """Reconcile a store now. Returns the parties that were added."""
        new_parties = reconcile_parties(store.transactions, store.parties)
        if not new_parties:
            return []

        added = store.add_parties(new_parties)
        names = [party.name for party in added]
        logger.info("parties_reconciled", names=names)
        if self._on_added and names:
            self._on_added(names)
        return added
