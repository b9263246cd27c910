"""
Tests for the audit logger.
"""

from uuid import uuid4

from transaction_import.audit import AuditLogger, create_correlation_id
from transaction_import.models.audit import AuditEventBuilder, AuditEventType
from transaction_import.services import AuditStorageInterface, InMemoryAuditStorage

from conftest import run


class BrokenAuditStorage(AuditStorageInterface):

    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_local_only(self):
        """Test logging without storage succeeds."""
        event = AuditEventBuilder.records_staged(2, uuid4())

        assert run(AuditLogger().log(event)) is True

    def test_persists_to_storage(self):
        """Test events are appended to the configured storage."""
        storage = InMemoryAuditStorage()
        correlation_id = create_correlation_id()

        run(AuditLogger(storage).log_resync("discard failed", 3, correlation_id))

        [event] = storage.events
        assert event.event_type == AuditEventType.RESYNC_FORCED
        assert event.correlation_id == correlation_id

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit store never breaks the caller."""
        event = AuditEventBuilder.operation_failed("discard", "guid-1", "boom", uuid4())

        assert run(AuditLogger(BrokenAuditStorage()).log(event)) is False

    def test_operation_failed_helper(self):
        """Test the failure helper records the stage."""
        storage = InMemoryAuditStorage()

        run(AuditLogger(storage).log_operation_failed(
            action="accept",
            guid="guid-1",
            error_message="delete down",
            correlation_id=uuid4(),
            stage="delete",
        ))

        [event] = storage.events
        assert event.error_message == "delete down"
        assert event.details["stage"] == "delete"
