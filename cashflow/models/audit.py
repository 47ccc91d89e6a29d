"""
Audit Models for CashFlow Ledger

Every significant ledger action is recorded as an audit event:
1. Traceability of who added or removed what
2. Debugging information when sync goes wrong
3. Ability to reconstruct what the session did

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Parties
    PARTY_ADDED = "party_added"
    PARTIES_RECONCILED = "parties_reconciled"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Remote sync
    SYNC_PULLED = "sync_pulled"
    SYNC_PULL_FAILED = "sync_pull_failed"
    SYNC_PUSHED = "sync_pushed"
    SYNC_PUSH_FAILED = "sync_push_failed"
    ENDPOINT_CONFIGURED = "endpoint_configured"

    # AI
    INSIGHTS_GENERATED = "insights_generated"
    INSIGHTS_UNAVAILABLE = "insights_unavailable"

    # Export
    REPORT_EXPORTED = "report_exported"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'party', 'sync')"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.party_added(party.id, party.name)
        event = AuditEventBuilder.sync_push_failed(tx.id)
    """

    @staticmethod
    def party_added(party_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTY_ADDED,
            entity_type="party",
            entity_id=party_id,
            description=f"Party added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def parties_reconciled(names: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIES_RECONCILED,
            entity_type="party",
            description=f"{len(names)} parties created from transactions",
            details={"names": names},
        )

    @staticmethod
    def transaction_added(
        transaction_id: str,
        sender: str,
        recipient: str,
        amount: str,
        kind: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {sender} -> {recipient} {amount}",
            details={
                "from": sender,
                "to": recipient,
                "amount": amount,
                "type": kind,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted locally (not propagated to remote)",
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            description=f"Submission rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def sync_pulled(count: int, user_initiated: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PULLED,
            entity_type="sync",
            description=f"Pulled {count} transactions from remote",
            details={"count": count},
            is_user_action=user_initiated,
        )

    @staticmethod
    def sync_pull_failed(user_initiated: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PULL_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="sync",
            description="Pull from remote failed; local state kept",
            is_user_action=user_initiated,
        )

    @staticmethod
    def sync_pushed(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PUSHED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction sent to remote",
        )

    @staticmethod
    def sync_push_failed(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PUSH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction could not be sent to remote",
        )

    @staticmethod
    def endpoint_configured(url: str, source: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENDPOINT_CONFIGURED,
            entity_type="sync",
            description=f"Remote endpoint configured from {source}",
            details={"source": source, "url": url},
        )

    @staticmethod
    def insights_generated(transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            entity_type="insight",
            description=f"Insights generated over {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def insights_unavailable(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="insight",
            description="No insight available",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def report_exported(row_count: int, filename: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            entity_type="report",
            description=f"Exported {row_count} rows to {filename}",
            details={"row_count": row_count, "filename": filename},
            is_user_action=True,
        )
