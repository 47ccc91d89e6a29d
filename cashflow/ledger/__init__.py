"""Ledger core: the store and its pure derivations."""

from cashflow.ledger.balances import compute_balances, sorted_balances
from cashflow.ledger.reconciler import (
    PartyReconciler,
    missing_party_names,
    reconcile_parties,
)
from cashflow.ledger.store import DEFAULT_PARTY_NAMES, LedgerStore

__all__ = [
    "DEFAULT_PARTY_NAMES",
    "LedgerStore",
    "PartyReconciler",
    "compute_balances",
    "missing_party_names",
    "reconcile_parties",
    "sorted_balances",
]
