"""
Audit Models for Transaction Import

Every significant action in the pipeline is logged for audit purposes.
This provides:
1. Complete traceability of accepted and discarded records
2. Debugging information when a remote write fails
3. A record of every forced resync

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from transaction_import.models.transaction import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the import pipeline has its own event type.
    """
    # Parsing
    TEXT_PARSED = "text_parsed"
    RECORDS_STAGED = "records_staged"

    # Working set
    INITIAL_LOAD_COMPLETED = "initial_load_completed"
    RESYNC_FORCED = "resync_forced"
    RESYNC_FAILED = "resync_failed"

    # Human review
    RECORD_ACCEPTED = "record_accepted"
    RECORD_DISCARDED = "record_discarded"
    RECORD_EDITED = "record_edited"
    ALL_RECORDS_DISCARDED = "all_records_discarded"
    OPERATION_FAILED = "operation_failed"

    # Categorization
    AI_CATEGORIZATION_COMPLETED = "ai_categorization_completed"
    AI_CATEGORIZATION_FAILED = "ai_categorization_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'pending_record', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Correlation guid or issued identifier of the entity"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one import session)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.text_parsed(10, 1, correlation_id)
        event = AuditEventBuilder.record_accepted(guid, new_id, correlation_id)
    """

    @staticmethod
    def text_parsed(
        success_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_PARSED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import_text",
            correlation_id=correlation_id,
            description=(
                f"Parsed {success_count} transactions, "
                f"{error_count} lines rejected"
            ),
            details={
                "success_count": success_count,
                "error_count": error_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def records_staged(
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_STAGED,
            entity_type="pending_record",
            correlation_id=correlation_id,
            description=f"Staged {count} parsed transactions as pending records",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def initial_load_completed(
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INITIAL_LOAD_COMPLETED,
            entity_type="working_set",
            correlation_id=correlation_id,
            description=f"Loaded {count} pending records into the working set",
            details={"count": count},
        )

    @staticmethod
    def resync_forced(
        reason: str,
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESYNC_FORCED,
            severity=AuditSeverity.WARNING,
            entity_type="working_set",
            correlation_id=correlation_id,
            description=f"Working set rebuilt from remote store ({reason})",
            details={"reason": reason, "count": count},
        )

    @staticmethod
    def resync_failed(
        reason: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="working_set",
            correlation_id=correlation_id,
            description=f"Resync after {reason} failed",
            error_message=error_message,
            details={"reason": reason},
        )

    @staticmethod
    def record_accepted(
        guid: str,
        transaction_guid: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ACCEPTED,
            entity_type="pending_record",
            entity_id=guid,
            correlation_id=correlation_id,
            description=f"Pending record accepted as transaction {transaction_guid}",
            details={
                "transaction_guid": transaction_guid,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_discarded(
        guid: str,
        pending_transaction_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DISCARDED,
            entity_type="pending_record",
            entity_id=guid,
            correlation_id=correlation_id,
            description="Pending record discarded",
            details={"pending_transaction_id": pending_transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def record_edited(
        guid: str,
        fields: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_EDITED,
            entity_type="pending_record",
            entity_id=guid,
            correlation_id=correlation_id,
            description=f"Pending record edited: {', '.join(fields)}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def all_records_discarded(
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALL_RECORDS_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="working_set",
            correlation_id=correlation_id,
            description=f"All pending records discarded ({count} visible)",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def operation_failed(
        action: str,
        guid: Optional[str],
        error_message: str,
        correlation_id: UUID,
        stage: Optional[str] = None,
    ) -> AuditEvent:
        details = {"action": action}
        if stage:
            details["stage"] = stage
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="pending_record" if guid else "working_set",
            entity_id=guid,
            correlation_id=correlation_id,
            description=f"{action} failed",
            error_message=error_message,
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def ai_categorization_completed(
        guid: str,
        category: str,
        ai_model: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_CATEGORIZATION_COMPLETED,
            entity_type="pending_record",
            entity_id=guid,
            correlation_id=correlation_id,
            description=f"AI categorized record as {category}",
            details={"category": category, "ai_model": ai_model},
        )

    @staticmethod
    def ai_categorization_failed(
        guid: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_CATEGORIZATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="pending_record",
            entity_id=guid,
            correlation_id=correlation_id,
            description="AI categorization failed; category left unchanged",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
