"""
Core Data Models for CashFlow Ledger

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep the wire format of the remote sheet (from/to/type/paymentMethod)
3. Be serializable for local persistence and logging

DESIGN DECISION: Python attribute names differ from the wire names where the
wire name is a keyword or too vague ("from", "type"). Aliases keep both
working; serialization always uses the wire names.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Shared by Party.name and Transaction.sender/recipient, so every name a
# transaction carries can become a party
MAX_NAME_LENGTH = 200
MAX_NOTE_LENGTH = 1000


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

# Descriptive names accepted when parsing a transfer direction
_KIND_ALIASES = {
    "CLAIM": "CREDIT",
    "DISCHARGE": "DEBIT",
}


class TransactionKind(str, Enum):
    """
    Direction of a transfer, seen from the sender.

    CREDIT: the sender's claim increases (sender is owed the amount).
    DEBIT: the sender discharges an obligation (sender's claim decreases).
    """
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().upper()
            key = _KIND_ALIASES.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        return None


class PaymentMethod(str, Enum):
    """How the money moved."""
    CASH = "CASH"
    BANK = "BANK"
    GENERAL = "GENERAL"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().upper()
            for member in cls:
                if member.value == key:
                    return member
        return None


class SyncStatus(str, Enum):
    """Transient status shown to the user after a sync action."""
    IDLE = "idle"
    SUCCESS = "success"
    ERROR = "error"


class SyncPhase(str, Enum):
    """What the sync client is doing right now."""
    IDLE = "idle"
    FETCHING = "fetching"
    PUSHING = "pushing"
    AWAITING_CONFIRM = "awaiting_confirm"  # Pushed, waiting for the reconcile pull


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Party(BaseModel):
    """A named participant in the ledger."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque party identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        description="Display name, unique case-insensitively"
    )


class Transaction(BaseModel):
    """
    A single recorded transfer between two parties.

    Records coming from the remote sheet or local persistence are built by
    the normalizer in cashflow.validation, so amount may be the coerced
    default of zero. User submissions are stricter (see TransactionDraft).
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque transaction identifier"
    )
    sender: str = Field(
        ...,
        alias="from",
        max_length=MAX_NAME_LENGTH,
        description="Name of the paying party"
    )
    recipient: str = Field(
        ...,
        alias="to",
        max_length=MAX_NAME_LENGTH,
        description="Name of the receiving party"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Transferred amount"
    )
    kind: TransactionKind = Field(
        default=TransactionKind.CREDIT,
        alias="type",
        description="Transfer direction"
    )
    method: PaymentMethod = Field(
        default=PaymentMethod.GENERAL,
        alias="paymentMethod",
        description="Payment method tag"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the transfer happened (UTC)"
    )
    note: str = Field(
        default="",
        max_length=MAX_NOTE_LENGTH,
        description="Free text"
    )

    @field_validator("date")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, v: Decimal) -> Union[int, float]:
        # The sheet stores plain numbers
        if v == v.to_integral_value():
            return int(v)
        return float(v)

    def to_wire(self) -> dict:
        """Serialize with the remote sheet's field names."""
        return self.model_dump(mode="json", by_alias=True)


class TransactionDraft(BaseModel):
    """
    Raw transaction form input.

    Nothing is validated here on purpose: the amount may be any text the
    user typed. TransactionValidator decides whether it becomes a
    Transaction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    sender: str = ""
    recipient: str = ""
    amount: Union[Decimal, float, int, str] = ""
    kind: TransactionKind = TransactionKind.CREDIT
    method: PaymentMethod = PaymentMethod.GENERAL
    note: str = ""


class InsightReport(BaseModel):
    """AI-generated summary of the ledger."""
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    advice: str
    total_volume: float = Field(
        default=0.0,
        alias="totalVolume",
        description="Total money moved, as estimated by the model"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a submission."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_positive', 'self_transfer')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationResult(BaseModel):
    """Result of validating a transaction submission."""

    issues: list[ValidationIssue] = Field(default_factory=list)
    transaction: Optional[Transaction] = Field(
        default=None,
        description="The accepted transaction, if valid"
    )

    @property
    def is_valid(self) -> bool:
        return not self.issues and self.transaction is not None
