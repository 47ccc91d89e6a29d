"""
Tests for the remote ledger clients and the sync service.

All HTTP goes through httpx.MockTransport; no network access.
"""

import asyncio
import json

import httpx
import pytest

from cashflow.audit import AuditLogger
from cashflow.models.audit import AuditEventType
from cashflow.models.ledger import SyncPhase, SyncStatus
from cashflow.services.sync import (
    ConfigClient,
    InvalidEndpointError,
    RemoteLedgerClient,
    SyncError,
    SyncService,
    validate_endpoint,
)
from cashflow.services.sync.client import CACHE_BUST_PARAM
from tests.helpers import ENDPOINT, make_tx


SHEET_ROWS = [
    {"id": "r1", "from": "A", "to": "B", "amount": 100, "type": "CREDIT",
     "paymentMethod": "CASH", "date": "2024-03-01T10:00:00Z", "note": ""},
    {"id": "r2", "from": "B", "to": "C", "amount": "40", "type": "DEBIT",
     "date": "2024-03-05T10:00:00Z"},
]


def build_service(store, sheet, endpoint=ENDPOINT, **kwargs) -> SyncService:
    client = RemoteLedgerClient(fetch_attempts=1, transport=sheet.transport)
    kwargs.setdefault("poll_interval", 60.0)
    kwargs.setdefault("reconcile_delay", 0.01)
    kwargs.setdefault("status_display", 60.0)
    return SyncService(store=store, client=client, endpoint_url=endpoint, **kwargs)


class TestValidateEndpoint:
    def test_accepts_https_url(self):
        assert validate_endpoint(ENDPOINT).host == "script.example.com"

    @pytest.mark.parametrize("url", [None, "", "   ", "not a url", "ftp://example.com/x", "/relative/path"])
    def test_rejects_malformed_urls(self, url):
        with pytest.raises(InvalidEndpointError):
            validate_endpoint(url)

    def test_invalid_endpoint_is_a_sync_error(self):
        assert issubclass(InvalidEndpointError, SyncError)


class TestRemoteLedgerClient:
    """Tests for the low-level webhook client."""

    @pytest.mark.asyncio
    async def test_fetch_adds_cache_bust_parameter(self, sheet):
        sheet.rows = list(SHEET_ROWS)
        client = RemoteLedgerClient(fetch_attempts=1, transport=sheet.transport)
        payload = await client.fetch(ENDPOINT)
        await client.close()

        assert payload == SHEET_ROWS
        request = sheet.requests[0]
        assert request.method == "GET"
        assert CACHE_BUST_PARAM in request.url.params
        assert request.url.params[CACHE_BUST_PARAM].isdigit()

    @pytest.mark.asyncio
    async def test_fetch_non_json_body_returns_none(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
        client = RemoteLedgerClient(fetch_attempts=1, transport=transport)
        assert await client.fetch(ENDPOINT) is None
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_retries_transient_failures(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, json=[])

        client = RemoteLedgerClient(
            fetch_attempts=3,
            retry_wait_min=0,
            retry_wait_max=0,
            transport=httpx.MockTransport(handler),
        )
        assert await client.fetch(ENDPOINT) == []
        assert len(calls) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_gives_up_with_sync_error(self, sheet):
        sheet.fail = True
        client = RemoteLedgerClient(
            fetch_attempts=2, retry_wait_min=0, retry_wait_max=0, transport=sheet.transport
        )
        with pytest.raises(SyncError):
            await client.fetch(ENDPOINT)
        assert sheet.count("GET") == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_fetch_error_status_is_sync_error(self, sheet):
        sheet.status_code = 500
        sheet.payload = {"error": "boom"}
        client = RemoteLedgerClient(fetch_attempts=1, transport=sheet.transport)
        with pytest.raises(SyncError):
            await client.fetch(ENDPOINT)
        await client.close()

    @pytest.mark.asyncio
    async def test_send_posts_wire_json_as_text(self, sheet):
        client = RemoteLedgerClient(transport=sheet.transport)
        await client.send(ENDPOINT, make_tx(tx_id="t9", note="chai"))
        await client.close()

        request = sheet.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"].startswith("text/plain")
        body = json.loads(request.content.decode("utf-8"))
        assert body["id"] == "t9"
        assert body["from"] == "A"
        assert body["paymentMethod"] == "GENERAL"

    @pytest.mark.asyncio
    async def test_send_is_not_retried(self, sheet):
        sheet.fail = True
        client = RemoteLedgerClient(fetch_attempts=3, transport=sheet.transport)
        with pytest.raises(SyncError):
            await client.send(ENDPOINT, make_tx())
        assert sheet.count("POST") == 1
        await client.close()


class TestSyncServicePull:
    """Tests for pulling the remote list into the store."""

    @pytest.mark.asyncio
    async def test_pull_installs_remote_list(self, store, sheet):
        sheet.rows = list(SHEET_ROWS)
        store.add_transaction(make_tx(tx_id="local-only"))
        service = build_service(store, sheet)

        assert await service.pull() is True
        assert [tx.id for tx in store.transactions] == ["r2", "r1"]
        assert service.last_updated is not None
        assert service.phase == SyncPhase.IDLE
        await service.stop()

    @pytest.mark.asyncio
    async def test_non_array_payload_is_ignored(self, store, sheet):
        store.add_transaction(make_tx(tx_id="keep"))
        sheet.payload = {"error": "x"}
        service = build_service(store, sheet)

        assert await service.pull() is False
        assert [tx.id for tx in store.transactions] == ["keep"]
        assert service.status == SyncStatus.IDLE
        await service.stop()

    @pytest.mark.asyncio
    async def test_background_failure_is_silent(self, store, sheet):
        sheet.fail = True
        store.add_transaction(make_tx(tx_id="keep"))
        service = build_service(store, sheet)

        assert await service.pull() is False
        assert service.status == SyncStatus.IDLE
        assert service.last_error
        assert [tx.id for tx in store.transactions] == ["keep"]
        await service.stop()

    @pytest.mark.asyncio
    async def test_user_initiated_failure_shows_error_then_reverts(self, store, sheet):
        sheet.fail = True
        service = build_service(store, sheet, status_display=0.01)

        assert await service.pull(user_initiated=True) is False
        assert service.status == SyncStatus.ERROR
        await asyncio.sleep(0.05)
        assert service.status == SyncStatus.IDLE
        await service.stop()

    @pytest.mark.asyncio
    async def test_malformed_endpoint_fails_without_request(self, store, sheet):
        service = build_service(store, sheet, endpoint="not a url")
        assert await service.pull(user_initiated=True) is False
        assert service.status == SyncStatus.ERROR
        assert sheet.requests == []
        await service.stop()

    @pytest.mark.asyncio
    async def test_unconfigured_service_does_nothing(self, store, sheet):
        service = build_service(store, sheet, endpoint=None)
        assert service.is_configured is False
        assert await service.pull() is False
        assert await service.push(make_tx()) is False
        assert sheet.requests == []
        await service.stop()

    @pytest.mark.asyncio
    async def test_pull_is_audited(self, store, sheet):
        sheet.rows = list(SHEET_ROWS)
        audit = AuditLogger()
        service = build_service(store, sheet, audit_logger=audit)
        await service.pull(user_initiated=True)

        event = audit.recent_events(1)[0]
        assert event.event_type == AuditEventType.SYNC_PULLED
        assert event.is_user_action is True
        await service.stop()


class TestSyncServicePush:
    """Tests for pushing a new transaction."""

    @pytest.mark.asyncio
    async def test_push_success_schedules_reconcile_pull(self, store, sheet):
        service = build_service(store, sheet)
        tx = make_tx(tx_id="new-1")
        store.add_transaction(tx)

        assert await service.push(tx) is True
        assert service.status == SyncStatus.SUCCESS
        assert service.phase == SyncPhase.AWAITING_CONFIRM
        assert sheet.count("GET") == 0

        await asyncio.sleep(0.05)
        assert sheet.count("GET") == 1
        assert service.phase == SyncPhase.IDLE
        assert store.get_transaction("new-1") is not None
        await service.stop()

    @pytest.mark.asyncio
    async def test_quick_pushes_share_one_reconcile(self, store, sheet):
        service = build_service(store, sheet, reconcile_delay=0.03)
        await service.push(make_tx(tx_id="a"))
        await service.push(make_tx(tx_id="b"))

        await asyncio.sleep(0.1)
        assert sheet.count("POST") == 2
        assert sheet.count("GET") == 1
        await service.stop()

    @pytest.mark.asyncio
    async def test_push_failure_shows_error_and_keeps_local_row(self, store, sheet):
        sheet.fail = True
        service = build_service(store, sheet)
        tx = make_tx(tx_id="offline")
        store.add_transaction(tx)

        assert await service.push(tx) is False
        assert service.status == SyncStatus.ERROR
        assert service.phase == SyncPhase.IDLE

        await asyncio.sleep(0.05)
        assert sheet.count("GET") == 0
        assert store.get_transaction("offline") is not None
        await service.stop()


class TestSyncServicePolling:
    """Tests for the background poller and endpoint changes."""

    @pytest.mark.asyncio
    async def test_poller_pulls_periodically(self, store, sheet):
        sheet.rows = list(SHEET_ROWS)
        service = build_service(store, sheet, poll_interval=0.01)
        service.start_polling()
        assert service.is_polling

        await asyncio.sleep(0.08)
        assert sheet.count("GET") >= 2
        await service.stop()
        assert service.is_polling is False

    @pytest.mark.asyncio
    async def test_poller_survives_failures(self, store, sheet):
        sheet.fail = True
        service = build_service(store, sheet, poll_interval=0.01)
        service.start_polling()

        await asyncio.sleep(0.05)
        assert service.is_polling
        assert service.status == SyncStatus.IDLE
        await service.stop()

    @pytest.mark.asyncio
    async def test_set_endpoint_restarts_poller(self, store, sheet):
        service = build_service(store, sheet)
        service.start_polling()
        first_task = service._poll_task

        assert service.set_endpoint("https://other.example.com/exec") is True
        assert service.is_polling
        assert service._poll_task is not first_task
        assert service.endpoint_url == "https://other.example.com/exec"

        assert service.set_endpoint("https://other.example.com/exec") is False
        await service.stop()

    @pytest.mark.asyncio
    async def test_clearing_endpoint_stops_poller(self, store, sheet):
        service = build_service(store, sheet)
        service.start_polling()
        service.set_endpoint(None)
        assert service.is_polling is False
        await service.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconcile(self, store, sheet):
        service = build_service(store, sheet, reconcile_delay=10.0)
        await service.push(make_tx())
        await service.stop()

        assert service.phase == SyncPhase.IDLE
        assert service.status == SyncStatus.IDLE
        assert sheet.count("GET") == 0


class TestConfigClient:
    """Tests for resolving the endpoint URL from the config endpoint."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"endpoint_url": ENDPOINT},
        {"gsheetUrl": ENDPOINT},
        {"endpoint_url": "  ", "gsheetUrl": ENDPOINT},
    ])
    async def test_endpoint_keys(self, payload):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        client = ConfigClient(transport=transport)
        assert await client.fetch_endpoint_url("https://app.example.com/api/config") == ENDPOINT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, json={}),
        httpx.Response(200, json=[ENDPOINT]),
        httpx.Response(200, text="not json"),
        httpx.Response(404),
    ])
    async def test_unusable_config_returns_none(self, response):
        transport = httpx.MockTransport(lambda request: response)
        client = ConfigClient(transport=transport)
        assert await client.fetch_endpoint_url("https://app.example.com/api/config") is None

    @pytest.mark.asyncio
    async def test_invalid_config_url_returns_none(self):
        assert await ConfigClient().fetch_endpoint_url("nonsense") is None
