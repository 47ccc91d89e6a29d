"""Test builders and fakes shared across test modules."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx

from cashflow.models.ledger import PaymentMethod, Transaction, TransactionKind


ENDPOINT = "https://script.example.com/macros/s/abc/exec"


def make_tx(
    tx_id: str = "t1",
    sender: str = "A",
    recipient: str = "B",
    amount: str = "100",
    kind: TransactionKind = TransactionKind.CREDIT,
    date: datetime = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc),
    method: PaymentMethod = PaymentMethod.GENERAL,
    note: str = "",
) -> Transaction:
    """Build a Transaction with sensible defaults."""
    return Transaction(
        id=tx_id,
        sender=sender,
        recipient=recipient,
        amount=Decimal(amount),
        kind=kind,
        method=method,
        date=date,
        note=note,
    )


class FakeSheet:
    """
    In-process stand-in for the spreadsheet webhook.

    Serves `rows` on GET, appends JSON bodies on POST and records every
    request. Set `fail` to make every request raise a connection error,
    or `payload` to serve something other than the rows.
    """

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.requests: list[httpx.Request] = []
        self.fail = False
        self.payload = None
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            raise httpx.ConnectError("unreachable", request=request)

        if request.method == "POST":
            self.rows.append(json.loads(request.content.decode("utf-8")))
            return httpx.Response(302, headers={"Location": "https://example.com/done"})

        if self.payload is not None:
            return httpx.Response(self.status_code, json=self.payload)
        return httpx.Response(self.status_code, json=self.rows)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)
