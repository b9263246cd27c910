"""
Data Models Package

This package contains all Pydantic models used by the import pipeline.
All data flowing through the system must conform to these schemas.
"""

from transaction_import.models.transaction import (
    EDITABLE_FIELDS,
    AccountType,
    AiProvenance,
    CandidateLine,
    CategorizationMetadata,
    LineError,
    ManualProvenance,
    ParsedTransaction,
    ParseResult,
    PendingRecord,
    PermanentTransaction,
    RemotePendingTransaction,
    ReoccurringType,
    RuleBasedProvenance,
    TransactionState,
    TransactionType,
)
from transaction_import.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from transaction_import.models.operations import (
    OperationOutcome,
    OperationResult,
    RowState,
    SessionAction,
)
from transaction_import.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "EDITABLE_FIELDS",
    "AccountType",
    "AiProvenance",
    "CandidateLine",
    "CategorizationMetadata",
    "LineError",
    "ManualProvenance",
    "ParsedTransaction",
    "ParseResult",
    "PendingRecord",
    "PermanentTransaction",
    "RemotePendingTransaction",
    "ReoccurringType",
    "RuleBasedProvenance",
    "TransactionState",
    "TransactionType",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Operation models
    "OperationOutcome",
    "OperationResult",
    "RowState",
    "SessionAction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
