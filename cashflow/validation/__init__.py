"""Normalization and validation package."""

from cashflow.validation.validator import (
    TransactionValidator,
    new_id,
    parse_amount,
    parse_timestamp,
)

__all__ = [
    "TransactionValidator",
    "new_id",
    "parse_amount",
    "parse_timestamp",
]
