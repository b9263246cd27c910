"""
Core Data Models for Transaction Import

These models define the strict schemas for all data flowing through the
import pipeline. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the remote stores and for logging
4. Keep category and categorization provenance together

DESIGN DECISION: Pending records are frozen. Every edit produces a new
copy, so a record held by an in-flight operation can never be mutated
behind its back.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _coerce_date(value: Any) -> Any:
    # The backend sends midnight timestamps ("2024-01-01T00:00:00.000Z")
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    if isinstance(value, datetime):
        return value.date()
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ReoccurringType(str, Enum):
    """How often a transaction repeats."""
    ONETIME = "onetime"
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_ANNUALLY = "bi_annually"
    ANNUALLY = "annually"
    UNDEFINED = "undefined"


class TransactionState(str, Enum):
    """Clearing state of a transaction."""
    CLEARED = "cleared"
    OUTSTANDING = "outstanding"
    FUTURE = "future"
    UNDEFINED = "undefined"


class TransactionType(str, Enum):
    """
    Transaction direction.

    Imported lines start as UNDEFINED: the user picks the type during review.
    """
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"
    UNDEFINED = "undefined"


class AccountType(str, Enum):
    """Account type of the owning account."""
    DEBIT = "debit"
    CREDIT = "credit"
    UNDEFINED = "undefined"


# =============================================================================
# CATEGORIZATION PROVENANCE - tagged union on `source`
# =============================================================================

class RuleBasedProvenance(BaseModel):
    """Category came from the static keyword rules."""
    model_config = ConfigDict(frozen=True)

    source: Literal["rule-based"] = "rule-based"
    timestamp: datetime = Field(default_factory=utcnow)
    fallback_reason: Optional[str] = Field(
        default=None,
        description="Why AI was not used for this record"
    )


class AiProvenance(BaseModel):
    """Category came from the AI categorization service."""
    model_config = ConfigDict(frozen=True)

    source: Literal["ai"] = "ai"
    timestamp: datetime = Field(default_factory=utcnow)
    ai_model: Optional[str] = None
    similar_transactions_used: int = Field(default=0, ge=0)


class ManualProvenance(BaseModel):
    """Category was typed in by the user."""
    model_config = ConfigDict(frozen=True)

    source: Literal["manual"] = "manual"
    timestamp: datetime = Field(default_factory=utcnow)


CategorizationMetadata = Annotated[
    Union[RuleBasedProvenance, AiProvenance, ManualProvenance],
    Field(discriminator="source"),
]


# =============================================================================
# PARSER MODELS
# =============================================================================

class CandidateLine(BaseModel):
    """One non-blank line of pasted input. Exists only during a parse pass."""
    model_config = ConfigDict(frozen=True)

    raw_text: str
    line_number: int = Field(ge=1, description="1-based, counted over non-blank lines")


class LineError(BaseModel):
    """A line that did not match `YYYY-MM-DD <description> <amount>`."""
    model_config = ConfigDict(frozen=True)

    line_number: int = Field(ge=1)
    preview: str = Field(
        ...,
        description="Leading part of the offending line"
    )
    truncated: bool = Field(
        default=False,
        description="True when the line was longer than the preview"
    )
    reason: str = Field(
        default="invalid_format",
        pattern="^(invalid_format|invalid_date)$",
    )

    @property
    def message(self) -> str:
        suffix = "..." if self.truncated else ""
        return f'Line {self.line_number}: "{self.preview}{suffix}"'


class ParsedTransaction(BaseModel):
    """
    A successfully parsed line.

    CRITICAL: This is UNSAVED data. It has no identifier until it is
    staged into the pending store.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    transaction_date: date
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., decimal_places=2)
    category: str = Field(..., min_length=1)
    account_name_owner: str = Field(..., min_length=1)

    # Fixed defaults for imported lines
    reoccurring_type: ReoccurringType = ReoccurringType.ONETIME
    transaction_state: TransactionState = TransactionState.OUTSTANDING
    transaction_type: TransactionType = TransactionType.UNDEFINED
    account_type: AccountType = AccountType.DEBIT
    active_status: bool = True
    notes: str = ""


class ParseResult(BaseModel):
    """Aggregate outcome of one parse pass."""

    transactions: list[ParsedTransaction] = Field(default_factory=list)
    errors: list[LineError] = Field(default_factory=list)
    total_lines: int = Field(default=0, ge=0)

    @property
    def success_count(self) -> int:
        return len(self.transactions)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def summary(self) -> str:
        """Snackbar-style summary of the parse."""
        if self.error_count:
            return (
                f"Successfully parsed {self.success_count} transactions. "
                f"{self.error_count} lines failed to parse."
            )
        return f"Successfully parsed {self.success_count} transactions."


# =============================================================================
# REMOTE / WIRE MODELS
# =============================================================================

class RemotePendingTransaction(BaseModel):
    """
    A pending transaction as the remote store holds it.

    Serialized camelCase on the wire (`pendingTransactionId`, ...).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    pending_transaction_id: int
    account_name_owner: str
    transaction_date: date
    description: str = ""
    amount: Decimal
    review_status: str = "pending"
    owner: Optional[str] = None

    @field_validator("transaction_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_date(v)


class PermanentTransaction(BaseModel):
    """An accepted transaction in the permanent store."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    guid: str = Field(..., min_length=1, description="Issued unique identifier")
    account_name_owner: str
    transaction_date: date
    description: str
    category: str
    amount: Decimal
    transaction_state: TransactionState = TransactionState.OUTSTANDING
    transaction_type: TransactionType = TransactionType.UNDEFINED
    reoccurring_type: ReoccurringType = ReoccurringType.ONETIME
    account_type: AccountType = AccountType.DEBIT
    active_status: bool = True
    notes: str = ""
    due_date: Optional[date] = None

    @field_validator("transaction_date", "due_date", mode="before")
    @classmethod
    def normalize_dates(cls, v: Any) -> Any:
        return _coerce_date(v)


# =============================================================================
# LOCAL WORKING-SET MODEL
# =============================================================================

# Fields a user may change during review. Identity and provenance are not
# directly editable.
EDITABLE_FIELDS = frozenset({
    "account_name_owner",
    "transaction_date",
    "description",
    "amount",
    "category",
    "reoccurring_type",
    "transaction_state",
    "transaction_type",
    "account_type",
    "notes",
})

# Fields the pending store persists; everything else is local-only.
REMOTE_FIELDS = frozenset({
    "account_name_owner",
    "transaction_date",
    "description",
    "amount",
})


class PendingRecord(BaseModel):
    """
    A transaction awaiting human review.

    `guid` is the client-side correlation identifier: every local lookup,
    diff and removal is keyed by it. `pending_transaction_id` is the
    server's identity and is only used when talking to the store.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    guid: str = Field(..., min_length=1)
    pending_transaction_id: int

    account_name_owner: str
    transaction_date: date
    description: str = ""
    amount: Decimal

    category: str = Field(..., min_length=1)
    category_metadata: CategorizationMetadata

    reoccurring_type: ReoccurringType = ReoccurringType.ONETIME
    transaction_state: TransactionState = TransactionState.OUTSTANDING
    transaction_type: TransactionType = TransactionType.UNDEFINED
    account_type: AccountType = AccountType.DEBIT
    active_status: bool = True
    notes: str = ""
    review_status: str = "pending"

    def with_category(
        self,
        category: str,
        metadata: Union[RuleBasedProvenance, AiProvenance, ManualProvenance],
    ) -> "PendingRecord":
        """The only way to change the category: provenance travels with it."""
        return self.model_copy(update={
            "category": category,
            "category_metadata": metadata,
        })

    def apply_edit(self, changes: dict[str, Any]) -> "PendingRecord":
        """
        Return a copy with user edits applied.

        A changed category is stamped as manual; any other edit keeps the
        existing provenance untouched.

        Raises:
            ValueError: If a non-editable field is named or a value is invalid
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")

        data = self.model_dump()
        data.update(changes)

        if "category" in changes and changes["category"] != self.category:
            data["category_metadata"] = ManualProvenance()
        else:
            data["category_metadata"] = self.category_metadata

        return PendingRecord.model_validate(data)

    def to_remote(self) -> RemotePendingTransaction:
        """Project back onto the remote store's shape."""
        return RemotePendingTransaction(
            pending_transaction_id=self.pending_transaction_id,
            account_name_owner=self.account_name_owner,
            transaction_date=self.transaction_date,
            description=self.description,
            amount=self.amount,
            review_status=self.review_status,
        )

    def to_permanent(self, guid: str) -> PermanentTransaction:
        """Build the permanent transaction from the current (edited) values."""
        return PermanentTransaction(
            guid=guid,
            account_name_owner=self.account_name_owner,
            transaction_date=self.transaction_date,
            description=self.description,
            category=self.category,
            amount=self.amount,
            transaction_state=self.transaction_state,
            transaction_type=self.transaction_type,
            reoccurring_type=self.reoccurring_type,
            account_type=self.account_type,
            active_status=self.active_status,
            notes=self.notes,
        )
