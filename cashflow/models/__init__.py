"""
Data Models Package

This package contains all Pydantic models used in the CashFlow Ledger.
All data flowing through the system must conform to these schemas.
"""

from cashflow.models.ledger import (
    MAX_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    InsightReport,
    Party,
    PaymentMethod,
    SyncPhase,
    SyncStatus,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAX_NAME_LENGTH",
    "MAX_NOTE_LENGTH",
    "InsightReport",
    "Party",
    "PaymentMethod",
    "SyncPhase",
    "SyncStatus",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
