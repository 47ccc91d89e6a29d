"""
Audit Logger

DESIGN DECISION: Every ledger mutation and sync outcome is logged.
This provides:
1. Traceability of local edits vs. remote overwrites
2. Debugging capability for the sync race
3. A recent-activity feed for the UI

The audit logger:
- Never raises (a logging failure must not break a user action)
- Keeps a bounded in-memory history of recent events
"""

import logging
from collections import deque
from typing import Optional

import structlog

from cashflow.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


_configured = False


def configure_logging(debug: bool = False) -> None:
    """Configure structlog once for the whole process."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured log and keeps the most recent ones
    in memory.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("cashflow.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            logging.getLogger(__name__).warning("Failed to write audit event: %s", e)

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def log_party_added(self, party_id: str, name: str) -> None:
        self.log(AuditEventBuilder.party_added(party_id, name))

    def log_parties_reconciled(self, names: list[str]) -> None:
        self.log(AuditEventBuilder.parties_reconciled(names))

    def log_transaction_added(
        self,
        transaction_id: str,
        sender: str,
        recipient: str,
        amount: str,
        kind: str,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            sender=sender,
            recipient=recipient,
            amount=amount,
            kind=kind,
        ))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_transaction_rejected(self, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.transaction_rejected(issues))

    def log_sync_pulled(self, count: int, user_initiated: bool) -> None:
        self.log(AuditEventBuilder.sync_pulled(count, user_initiated))

    def log_sync_pull_failed(self, user_initiated: bool) -> None:
        self.log(AuditEventBuilder.sync_pull_failed(user_initiated))

    def log_sync_pushed(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.sync_pushed(transaction_id))

    def log_sync_push_failed(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.sync_push_failed(transaction_id))

    def log_endpoint_configured(self, url: str, source: str) -> None:
        self.log(AuditEventBuilder.endpoint_configured(url, source))

    def log_insights(self, transaction_count: int, reason: Optional[str] = None) -> None:
        """Log an insight request; a reason means nothing was produced."""
        if reason:
            self.log(AuditEventBuilder.insights_unavailable(reason))
        else:
            self.log(AuditEventBuilder.insights_generated(transaction_count))

    def log_report_exported(self, row_count: int, filename: str) -> None:
        self.log(AuditEventBuilder.report_exported(row_count, filename))
