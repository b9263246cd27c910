"""
Audit Logger

DESIGN DECISION: Every significant action in the pipeline is logged.
This provides:
1. Complete traceability of what was accepted, edited and discarded
2. Debugging capability when the remote store misbehaves
3. A record of every forced resync

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the session if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from transaction_import.models.audit import AuditEvent, AuditEventBuilder
from transaction_import.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (sheet or memory) when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_text_parsed(
        self,
        success_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.text_parsed(
            success_count=success_count,
            error_count=error_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_records_staged(
        self,
        count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.records_staged(count, correlation_id))

    async def log_initial_load(
        self,
        count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.initial_load_completed(count, correlation_id))

    async def log_resync(
        self,
        reason: str,
        count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a completed resync."""
        event = AuditEventBuilder.resync_forced(
            reason=reason,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_resync_failed(
        self,
        reason: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.resync_failed(
            reason=reason,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_accepted(
        self,
        guid: str,
        transaction_guid: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log a pending record promoted to a permanent transaction."""
        event = AuditEventBuilder.record_accepted(
            guid=guid,
            transaction_guid=transaction_guid,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_discarded(
        self,
        guid: str,
        pending_transaction_id: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.record_discarded(
            guid=guid,
            pending_transaction_id=pending_transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_edited(
        self,
        guid: str,
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_edited(guid, fields, correlation_id))

    async def log_all_discarded(
        self,
        count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.all_records_discarded(count, correlation_id))

    async def log_operation_failed(
        self,
        action: str,
        guid: Optional[str],
        error_message: str,
        correlation_id: UUID,
        stage: Optional[str] = None,
    ) -> None:
        """Log a failed session operation (the resync is logged separately)."""
        event = AuditEventBuilder.operation_failed(
            action=action,
            guid=guid,
            error_message=error_message,
            correlation_id=correlation_id,
            stage=stage,
        )
        await self.log(event)

    async def log_ai_categorized(
        self,
        guid: str,
        category: str,
        ai_model: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.ai_categorization_completed(
            guid=guid,
            category=category,
            ai_model=ai_model,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ai_categorization_failed(
        self,
        guid: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.ai_categorization_failed(
            guid=guid,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new import session.
    Pass it through all subsequent operations.
    """
    return uuid4()
