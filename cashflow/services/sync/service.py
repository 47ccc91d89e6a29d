"""
Remote Sync Service

Keeps the ledger store in step with the remote sheet.

STATE MACHINE (phase):
    IDLE -> FETCHING -> IDLE                      pull
    IDLE -> PUSHING -> AWAITING_CONFIRM -> IDLE   push, then delayed pull

STATUS (what the user sees): idle | success | error. Success and error
revert to idle after a short display timeout.

CONSISTENCY MODEL: last-writer-wins-by-poll.
- A push is an optimistic local insert followed by a fire-and-forget POST
- A pull replaces the whole local transaction set with the remote one
- There is no merge step and no queue. A poll that lands before the sheet
  has processed a push will drop the optimistic row until the next pull.

Only user-initiated pulls report failures; background polls fail silently
so routine polling does not flash errors.
"""

import asyncio
from datetime import datetime
from typing import Optional

import structlog

from cashflow.audit import AuditLogger
from cashflow.ledger.store import LedgerStore
from cashflow.models.ledger import SyncPhase, SyncStatus, Transaction, utc_now
from cashflow.services.sync.client import RemoteLedgerClient, SyncError


logger = structlog.get_logger(__name__)


class SyncService:
    """
    Pull/push/poll coordinator for one ledger store.

    All methods must be called from the event loop that owns the store.
    """

    def __init__(
        self,
        store: LedgerStore,
        client: Optional[RemoteLedgerClient] = None,
        endpoint_url: Optional[str] = None,
        poll_interval: float = 20.0,
        reconcile_delay: float = 2.0,
        status_display: float = 3.0,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._client = client or RemoteLedgerClient()
        self._endpoint_url = endpoint_url
        self.poll_interval = poll_interval
        self.reconcile_delay = reconcile_delay
        self.status_display = status_display
        self._audit_logger = audit_logger

        self.status = SyncStatus.IDLE
        self.phase = SyncPhase.IDLE
        self.last_updated: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self._awaiting_confirm = False
        self._poll_task: Optional[asyncio.Task] = None
        self._status_task: Optional[asyncio.Task] = None
        self._reconcile_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Endpoint and polling
    # -------------------------------------------------------------------------

    @property
    def endpoint_url(self) -> Optional[str]:
        return self._endpoint_url

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint_url)

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def set_endpoint(self, url: Optional[str]) -> bool:
        """
        Change the endpoint URL.

        A running poller is recreated for the new URL. Returns True if
        the URL changed.
        """
        if url == self._endpoint_url:
            return False

        was_polling = self.is_polling
        self.stop_polling()
        self._endpoint_url = url
        logger.info("endpoint_changed", configured=bool(url))

        if was_polling and url:
            self.start_polling()
        return True

    def start_polling(self) -> None:
        """Start (or restart) the background pull loop."""
        self.stop_polling()
        if not self._endpoint_url:
            return
        self._poll_task = self._spawn(self._poll_loop())

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.pull()
            except Exception:
                # Keep polling; the next tick may succeed
                logger.exception("poll_iteration_failed")

    # -------------------------------------------------------------------------
    # Pull / push
    # -------------------------------------------------------------------------

    async def pull(self, user_initiated: bool = False) -> bool:
        """
        Replace local transactions with the remote list.

        Returns True if a new set was installed. Non-array payloads are
        logged and ignored; transport failures leave local state as is.
        """
        if not self._endpoint_url:
            return False

        self.phase = SyncPhase.FETCHING
        try:
            payload = await self._client.fetch(self._endpoint_url)
        except SyncError as e:
            self.last_error = str(e)
            logger.error("pull_failed", error=str(e), user_initiated=user_initiated)
            if self._audit_logger:
                self._audit_logger.log_sync_pull_failed(user_initiated)
            if user_initiated:
                self._set_status(SyncStatus.ERROR)
            return False
        finally:
            self.phase = self._resting_phase()

        if not isinstance(payload, list):
            logger.warning(
                "pull_payload_not_array",
                payload_type=type(payload).__name__,
                payload=str(payload)[:200],
            )
            return False

        installed = self._store.replace_transactions(payload)
        self.last_updated = utc_now()
        logger.info("pull_succeeded", count=len(installed), user_initiated=user_initiated)
        if self._audit_logger:
            self._audit_logger.log_sync_pulled(len(installed), user_initiated)
        return True

    async def push(self, transaction: Transaction) -> bool:
        """
        Send one new transaction to the remote sheet.

        On apparent success, schedules a reconciling pull after
        reconcile_delay. Returns False if nothing was sent.
        """
        if not self._endpoint_url:
            return False

        self.phase = SyncPhase.PUSHING
        try:
            await self._client.send(self._endpoint_url, transaction)
        except SyncError as e:
            self.last_error = str(e)
            self.phase = self._resting_phase()
            logger.error("push_failed", transaction_id=transaction.id, error=str(e))
            if self._audit_logger:
                self._audit_logger.log_sync_push_failed(transaction.id)
            self._set_status(SyncStatus.ERROR)
            return False

        logger.info("push_sent", transaction_id=transaction.id)
        if self._audit_logger:
            self._audit_logger.log_sync_pushed(transaction.id)
        self._set_status(SyncStatus.SUCCESS)
        self._schedule_reconcile()
        return True

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    async def stop(self) -> None:
        """Cancel all timers and close the HTTP client."""
        self.stop_polling()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._status_task = None
        self._reconcile_task = None
        self._awaiting_confirm = False
        self.status = SyncStatus.IDLE
        self.phase = SyncPhase.IDLE
        await self._client.close()

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _resting_phase(self) -> SyncPhase:
        return SyncPhase.AWAITING_CONFIRM if self._awaiting_confirm else SyncPhase.IDLE

    def _set_status(self, status: SyncStatus) -> None:
        self.status = status
        if self._status_task is not None:
            self._status_task.cancel()
            self._status_task = None
        if status != SyncStatus.IDLE:
            self._status_task = self._spawn(self._revert_status_later())

    async def _revert_status_later(self) -> None:
        await asyncio.sleep(self.status_display)
        self.status = SyncStatus.IDLE
        self._status_task = None

    def _schedule_reconcile(self) -> None:
        # Several quick pushes share one reconciling pull
        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
        self._awaiting_confirm = True
        self.phase = SyncPhase.AWAITING_CONFIRM
        self._reconcile_task = self._spawn(self._reconcile_later())

    async def _reconcile_later(self) -> None:
        await asyncio.sleep(self.reconcile_delay)
        self._awaiting_confirm = False
        self._reconcile_task = None
        await self.pull()
