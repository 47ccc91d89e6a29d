"""
Balance Calculator

Balances are derived, never stored: every read recomputes them from the
full transaction set.

Sign convention, from the sender's point of view:
- CREDIT: the sender's claim grows (sender +amount, recipient -amount)
- DEBIT: the sender discharges an obligation (sender -amount, recipient +amount)

Every transaction moves the same amount in opposite directions, so the
balances always sum to zero.
"""

from decimal import Decimal
from typing import Iterable

from cashflow.models.ledger import Party, Transaction, TransactionKind


def compute_balances(
    transactions: Iterable[Transaction],
    parties: Iterable[Party],
) -> dict[str, Decimal]:
    """
    Net balance per name.

    Includes every known party (zero if idle) and every name referenced
    by a transaction, even if it has no party record yet.
    """
    transactions = list(transactions)
    balances: dict[str, Decimal] = {party.name: Decimal("0") for party in parties}

    for tx in transactions:
        balances.setdefault(tx.sender, Decimal("0"))
        balances.setdefault(tx.recipient, Decimal("0"))

    for tx in transactions:
        if tx.kind == TransactionKind.CREDIT:
            balances[tx.sender] += tx.amount
            balances[tx.recipient] -= tx.amount
        else:
            balances[tx.sender] -= tx.amount
            balances[tx.recipient] += tx.amount

    return balances


def sorted_balances(
    transactions: Iterable[Transaction],
    parties: Iterable[Party],
) -> list[tuple[str, Decimal]]:
    """Balances ordered for display: largest claim first, then by name."""
    balances = compute_balances(transactions, parties)
    return sorted(balances.items(), key=lambda item: (-item[1], item[0].lower()))
