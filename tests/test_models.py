"""
Tests for CashFlow Ledger models

Test strategy:
1. Unit tests for individual components (models, validators, derivations)
2. Flow tests for sync and the session (with a fake HTTP transport)
3. No real API calls in tests
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cashflow.models.ledger import (
    InsightReport,
    Party,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
)
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from tests.helpers import make_tx


class TestTransactionModel:
    """Tests for the Transaction model and its wire format."""

    def test_accepts_wire_field_names(self):
        """Test construction from the sheet's field names."""
        tx = Transaction.model_validate({
            "id": "x1",
            "from": "Abhishek",
            "to": "Abhinav",
            "amount": 250,
            "type": "DEBIT",
            "paymentMethod": "CASH",
            "date": "2024-01-05T10:00:00Z",
            "note": "lunch",
        })
        assert tx.sender == "Abhishek"
        assert tx.recipient == "Abhinav"
        assert tx.amount == Decimal("250")
        assert tx.kind == TransactionKind.DEBIT
        assert tx.method == PaymentMethod.CASH

    def test_to_wire_uses_sheet_names(self):
        """Test serialization back to the sheet's shape."""
        wire = make_tx(amount="100").to_wire()
        assert set(wire) == {"id", "from", "to", "amount", "type", "paymentMethod", "date", "note"}
        assert wire["from"] == "A"
        assert wire["type"] == "CREDIT"
        assert wire["amount"] == 100
        assert wire["date"].startswith("2024-03-10T12:00:00")

    def test_fractional_amount_serialized_as_float(self):
        """Test that non-integral amounts stay numeric on the wire."""
        assert make_tx(amount="12.50").to_wire()["amount"] == 12.5

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            make_tx(amount="-1")

    def test_naive_date_becomes_utc(self):
        """Test naive timestamps are taken as UTC."""
        tx = make_tx(date=datetime(2024, 1, 1, 9, 30))
        assert tx.date.tzinfo is not None
        assert tx.date.utcoffset().total_seconds() == 0

    def test_rejects_empty_id(self):
        """Test that an id is required."""
        with pytest.raises(ValueError):
            make_tx(tx_id="")


class TestEnums:
    """Tests for the closed-set enums."""

    def test_kind_values(self):
        assert TransactionKind.CREDIT.value == "CREDIT"
        assert TransactionKind.DEBIT.value == "DEBIT"

    def test_kind_parsing_is_case_insensitive(self):
        assert TransactionKind("credit") == TransactionKind.CREDIT
        assert TransactionKind(" Debit ") == TransactionKind.DEBIT

    def test_kind_descriptive_aliases(self):
        """Test 'claim' and 'discharge' map onto the two directions."""
        assert TransactionKind("claim") == TransactionKind.CREDIT
        assert TransactionKind("discharge") == TransactionKind.DEBIT

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            TransactionKind("refund")

    def test_payment_method_parsing(self):
        assert PaymentMethod("bank") == PaymentMethod.BANK
        with pytest.raises(ValueError):
            PaymentMethod("crypto")


class TestSmallModels:
    """Tests for Party, drafts and insight reports."""

    def test_party_strips_whitespace(self):
        party = Party(id="1", name="  Abhishek  ")
        assert party.name == "Abhishek"

    def test_party_requires_name(self):
        with pytest.raises(ValueError):
            Party(id="1", name="   ")

    def test_draft_keeps_raw_amount_text(self):
        draft = TransactionDraft(sender="A", recipient="B", amount="12abc")
        assert draft.amount == "12abc"
        assert draft.kind == TransactionKind.CREDIT
        assert draft.method == PaymentMethod.GENERAL

    def test_insight_report_from_model_output(self):
        report = InsightReport.model_validate({
            "summary": "A is owed money",
            "advice": "Settle monthly",
            "totalVolume": 1500,
        })
        assert report.total_volume == 1500.0

    def test_validation_result_is_valid(self):
        invalid = ValidationResult(issues=[
            ValidationIssue(field="amount", issue_type="not_positive", message="x"),
        ])
        assert invalid.is_valid is False
        assert ValidationResult(transaction=make_tx()).is_valid is True


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_defaults(self):
        event = AuditEvent(
            event_type=AuditEventType.SYNC_PULLED,
            description="Pulled",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.is_user_action is False

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.transaction_added(
            transaction_id="t1",
            sender="A",
            recipient="B",
            amount="100",
            kind="CREDIT",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_added"
        assert log_dict["entity_id"] == "t1"
        assert log_dict["details"]["to"] == "B"
        assert log_dict["is_user_action"] is True

    def test_push_failure_is_error_severity(self):
        event = AuditEventBuilder.sync_push_failed("t1")
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_type == "transaction"

    def test_insights_unavailable_carries_reason(self):
        event = AuditEventBuilder.insights_unavailable("GEMINI_API_KEY is missing")
        assert event.event_type == AuditEventType.INSIGHTS_UNAVAILABLE
        assert event.error_message == "GEMINI_API_KEY is missing"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
