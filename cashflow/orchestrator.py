"""
Session Orchestrator for CashFlow Ledger

This module ties together all the components and defines the
user-facing flows:
1. Startup (load cache -> resolve endpoint -> first pull -> start polling)
2. Submit transaction (validate -> optimistic insert -> push -> delayed pull)
3. Views (balances, filtered list, CSV export, AI insights)

DESIGN DECISION: LedgerSession is the single writer. The UI never touches
the store directly, so every mutation goes through validation and is
audited.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from cashflow.agents import InsightAgent
from cashflow.audit import AuditLogger, configure_logging
from cashflow.config import get_settings
from cashflow.ledger import LedgerStore, PartyReconciler, compute_balances, sorted_balances
from cashflow.models.ledger import InsightReport, Party, Transaction, TransactionDraft
from cashflow.queries import ReportFilter, apply_filter, export_csv, report_filename
from cashflow.services.storage import (
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
)
from cashflow.services.sync import ConfigClient, RemoteLedgerClient, SyncService
from cashflow.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class LedgerSession:
    """
    One running ledger: store, reconciler, sync and insights.

    Flow for a new transaction:
    1. Validate the draft (invalid input is dropped silently)
    2. Make sure the recipient exists as a party
    3. Insert locally (optimistic)
    4. Push to the remote sheet; a pull follows after a short delay

    The remote sheet wins on every pull. Local deletions are not pushed,
    so a deleted row that still exists remotely comes back on the next poll.
    """

    def __init__(
        self,
        store: LedgerStore,
        sync: Optional[SyncService] = None,
        insight_agent: Optional[InsightAgent] = None,
        config_client: Optional[ConfigClient] = None,
        config_url: Optional[str] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._sync = sync
        self._insight_agent = insight_agent
        self._config_client = config_client
        self._config_url = config_url
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._reconciler = PartyReconciler(
            on_added=self._audit_logger.log_parties_reconciled
        )
        self._started = False

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def sync(self) -> Optional[SyncService]:
        return self._sync

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def parties(self) -> list[Party]:
        return self._store.parties

    @property
    def transactions(self) -> list[Transaction]:
        return self._store.transactions

    @property
    def insights_available(self) -> bool:
        return self._insight_agent is not None and not self._insight_agent.api_key_missing

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Load the local cache and bring up remote sync.

        The config endpoint is consulted once; its URL replaces the
        configured default only if it returns one.
        """
        if self._started:
            return
        self._store.load()
        self._reconciler.attach(self._store)
        self._started = True

        if self._sync is None:
            return

        if self._sync.endpoint_url:
            self._audit_logger.log_endpoint_configured(self._sync.endpoint_url, "settings")

        if self._config_client is not None and self._config_url:
            url = await self._config_client.fetch_endpoint_url(self._config_url)
            if url:
                self._sync.set_endpoint(url)
                self._audit_logger.log_endpoint_configured(url, "config endpoint")

        if self._sync.is_configured:
            await self._sync.pull()
            self._sync.start_polling()

    async def shutdown(self) -> None:
        """Stop polling and release network resources."""
        if self._sync is not None:
            await self._sync.stop()
        self._reconciler.detach()
        self._started = False

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_party(self, name: str) -> Optional[Party]:
        """Add a party; None if blank or a duplicate (case-insensitive)."""
        party = self._store.add_party(name)
        if party is not None:
            self._audit_logger.log_party_added(party.id, party.name)
        return party

    async def submit_transaction(self, draft: TransactionDraft) -> Optional[Transaction]:
        """
        Record a new transaction and replicate it.

        Returns the stored transaction, or None if the draft was invalid
        (non-positive amount, missing names, self-transfer).
        """
        result = self._validator.validate_submission(draft)
        if not result.is_valid:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            logger.info("submission_rejected", issues=issues)
            self._audit_logger.log_transaction_rejected(issues)
            return None

        transaction = result.transaction

        # Auto-add the recipient; the reconciler would catch it too, this
        # keeps the user's spelling and audits it as a user action
        if self._store.find_party(transaction.recipient) is None:
            self.add_party(transaction.recipient)

        self._store.add_transaction(transaction)
        self._audit_logger.log_transaction_added(
            transaction_id=transaction.id,
            sender=transaction.sender,
            recipient=transaction.recipient,
            amount=str(transaction.amount),
            kind=transaction.kind.value,
        )

        if self._sync is not None:
            await self._sync.push(transaction)
        return transaction

    def delete_transaction(self, transaction_id: str) -> bool:
        """Delete locally. Not propagated to the remote sheet."""
        deleted = self._store.delete_transaction(transaction_id)
        if deleted:
            self._audit_logger.log_transaction_deleted(transaction_id)
        return deleted

    async def refresh(self) -> bool:
        """User-initiated pull; failures show as an error status."""
        if self._sync is None:
            return False
        return await self._sync.pull(user_initiated=True)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def balances(self) -> dict[str, Decimal]:
        return compute_balances(self._store.transactions, self._store.parties)

    def sorted_balances(self) -> list[tuple[str, Decimal]]:
        return sorted_balances(self._store.transactions, self._store.parties)

    def view(self, report_filter: Optional[ReportFilter] = None) -> list[Transaction]:
        """Filtered transactions in store order."""
        return apply_filter(self._store.transactions, report_filter or ReportFilter())

    def export(
        self,
        report_filter: Optional[ReportFilter] = None,
        today: Optional[date] = None,
    ) -> Optional[tuple[str, str]]:
        """
        CSV of the filtered view.

        Returns (filename, content), or None when no rows match.
        """
        rows = self.view(report_filter)
        content = export_csv(rows)
        if content is None:
            return None

        filename = report_filename(today)
        self._audit_logger.log_report_exported(len(rows), filename)
        return filename, content

    async def generate_insights(self) -> Optional[InsightReport]:
        """AI summary of the whole ledger, or None if unavailable."""
        transactions = self._store.transactions
        if self._insight_agent is None:
            self._audit_logger.log_insights(len(transactions), reason="Insights not configured")
            return None

        report = await self._insight_agent.generate(transactions, self._store.party_names)
        if report is None:
            reason = (
                "GEMINI_API_KEY is missing"
                if self._insight_agent.api_key_missing
                else "No insight available"
            )
            self._audit_logger.log_insights(len(transactions), reason=reason)
        else:
            self._audit_logger.log_insights(len(transactions))
        return report


def create_app_components(
    use_storage: bool = True,
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerSession:
    """
    Factory function to build a LedgerSession from settings.

    Args:
        use_storage: Persist to the JSON files in LEDGER_DATA_DIR.
                    Set to False for an in-memory session.
        storage: Explicit storage backend (overrides use_storage)

    Returns:
        A session that still needs `await session.start()`
    """
    settings = get_settings()
    ledger_settings = settings.ledger
    configure_logging(debug=settings.app.debug_mode)

    if storage is None:
        if use_storage:
            storage = JsonFileLedgerStorage(ledger_settings.data_dir)
        else:
            storage = InMemoryLedgerStorage()

    audit_logger = AuditLogger()
    validator = TransactionValidator()
    store = LedgerStore(
        storage=storage,
        validator=validator,
        default_parties=ledger_settings.default_parties_list,
    )

    sync = SyncService(
        store=store,
        client=RemoteLedgerClient(
            timeout=ledger_settings.request_timeout_seconds,
            fetch_attempts=ledger_settings.fetch_attempts,
        ),
        endpoint_url=ledger_settings.endpoint_url,
        poll_interval=ledger_settings.poll_interval_seconds,
        reconcile_delay=ledger_settings.reconcile_delay_seconds,
        status_display=ledger_settings.status_display_seconds,
        audit_logger=audit_logger,
    )

    config_client = None
    if ledger_settings.config_url:
        config_client = ConfigClient(timeout=ledger_settings.request_timeout_seconds)

    return LedgerSession(
        store=store,
        sync=sync,
        insight_agent=InsightAgent(settings.gemini),
        config_client=config_client,
        config_url=ledger_settings.config_url,
        validator=validator,
        audit_logger=audit_logger,
    )
