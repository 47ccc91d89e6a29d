"""
Transaction Normalization and Validation

DESIGN DECISION: Two different gates for two different sources:

REMOTE / PERSISTED RECORDS (normalize_record):
- Come from a spreadsheet anyone can edit, or from an old local cache
- Every field is coerced to a safe default instead of failing
- The result is either a fully-typed Transaction or nothing at all
- A bad row never blocks the rest of the sheet

USER SUBMISSIONS (validate_submission):
- Come from the transaction form
- Nothing is coerced: a bad amount or a self-transfer is rejected
- The caller drops rejected submissions without touching any state
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from numbers import Number
from typing import Any, Mapping, Optional
from uuid import uuid4

import structlog
from dateutil import parser as date_parser

from cashflow.models.ledger import (
    MAX_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    utc_now,
)


logger = structlog.get_logger(__name__)

# Leading numeric prefix, the way a spreadsheet cell like "150 rs" is read
_NUMBER_PREFIX = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)")

DEFAULT_KIND = TransactionKind.DEBIT
DEFAULT_METHOD = PaymentMethod.GENERAL


def new_id() -> str:
    """Fresh opaque identifier."""
    return uuid4().hex


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse an amount leniently.

    Handles numbers, "1,234.50", "₹500", "150 rs". Returns None when no
    number can be read.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, Number):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None

    text = str(value).strip()
    text = re.sub(r"[$€£¥₹,\s]", "", text)
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from a sheet cell.

    Accepts datetime objects, epoch milliseconds, ISO-8601 and free-form
    date strings. Naive results are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None

    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, Number):
        try:
            parsed = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class TransactionValidator:
    """
    Normalizes untrusted records and validates user submissions.

    Stateless; one instance can be shared by the store and the sync client.
    """

    def normalize_record(
        self,
        raw: Any,
        index: int = 0,
        now: Optional[datetime] = None,
    ) -> Optional[Transaction]:
        """
        Coerce one untrusted record into a Transaction.

        Args:
            raw: A Transaction, or a mapping with wire field names
            index: Position in the source list (used for synthesized ids)
            now: Default timestamp for missing or unparseable dates

        Returns:
            A fully-typed Transaction, or None if the element is not a record
        """
        if isinstance(raw, Transaction):
            return raw

        if not isinstance(raw, Mapping):
            logger.warning("record_rejected", index=index, reason="not an object")
            return None

        now = now or utc_now()

        tx_id = _text(raw.get("id"))
        if not tx_id:
            tx_id = f"sheet-{index}-{int(now.timestamp() * 1000)}"

        amount = parse_amount(raw.get("amount"))
        if amount is None or amount < 0:
            amount = Decimal("0")

        date = parse_timestamp(raw.get("date"))
        if date is None:
            date = now

        try:
            kind = TransactionKind(raw.get("type", raw.get("kind")))
        except ValueError:
            kind = DEFAULT_KIND

        try:
            method = PaymentMethod(raw.get("paymentMethod", raw.get("method")))
        except ValueError:
            method = DEFAULT_METHOD

        sender = raw.get("from", raw.get("sender"))
        recipient = raw.get("to", raw.get("recipient"))

        return Transaction(
            id=tx_id,
            sender=_text(sender)[:MAX_NAME_LENGTH].strip(),
            recipient=_text(recipient)[:MAX_NAME_LENGTH].strip(),
            amount=amount,
            kind=kind,
            method=method,
            date=date,
            note=_text(raw.get("note"))[:MAX_NOTE_LENGTH],
        )

    def normalize_records(
        self,
        records: Any,
        now: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        Normalize a list of records and sort newest first.

        Elements that are not records are dropped.
        """
        now = now or utc_now()
        normalized = []
        for index, raw in enumerate(records):
            tx = self.normalize_record(raw, index=index, now=now)
            if tx is not None:
                normalized.append(tx)

        normalized.sort(key=lambda t: t.date, reverse=True)
        return normalized

    def validate_submission(
        self,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Validate a transaction form submission.

        Returns a ValidationResult carrying the new Transaction when valid.
        """
        issues: list[ValidationIssue] = []

        amount = parse_amount(draft.amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a number",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="not_positive",
                message="Amount must be greater than zero",
            ))

        sender = draft.sender.strip()
        recipient = draft.recipient.strip()

        if not sender:
            issues.append(ValidationIssue(
                field="from",
                issue_type="missing",
                message="Who paid is required",
            ))
        if not recipient:
            issues.append(ValidationIssue(
                field="to",
                issue_type="missing",
                message="Recipient is required",
            ))
        for field, name in (("from", sender), ("to", recipient)):
            if len(name) > MAX_NAME_LENGTH:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="too_long",
                    message=f"Names are limited to {MAX_NAME_LENGTH} characters",
                ))
        if sender and recipient and sender.lower() == recipient.lower():
            issues.append(ValidationIssue(
                field="to",
                issue_type="self_transfer",
                message="Sender and recipient must be different",
            ))

        if issues:
            return ValidationResult(issues=issues)

        transaction = Transaction(
            id=new_id(),
            sender=sender,
            recipient=recipient,
            amount=amount,
            kind=draft.kind,
            method=draft.method,
            date=now or utc_now(),
            note=draft.note[:MAX_NOTE_LENGTH],
        )
        return ValidationResult(transaction=transaction)
