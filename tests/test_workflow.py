"""
Tests for the acceptance workflow on its own.
"""

from datetime import date
from decimal import Decimal

import pytest

from transaction_import.errors import AcceptanceError, IdentifierIssueError
from transaction_import.models.transaction import PendingRecord, RuleBasedProvenance
from transaction_import.services import (
    IdentifierIssuerInterface,
    InMemoryPendingStore,
    InMemoryTransactionStore,
    StorageError,
    UuidIdentifierIssuer,
)
from transaction_import.workflows import AcceptanceStage, AcceptanceState, AcceptanceWorkflow

from conftest import make_remote, run


class RecordingPendingStore(InMemoryPendingStore):

    def __init__(self, records, log, fail=False):
        super().__init__(records)
        self._log = log
        self._fail = fail

    async def delete(self, pending_transaction_id):
        self._log.append("delete")
        if self._fail:
            raise StorageError("delete down")
        await super().delete(pending_transaction_id)


class RecordingTransactionStore(InMemoryTransactionStore):

    def __init__(self, log):
        super().__init__()
        self._log = log

    async def insert(self, transaction):
        self._log.append("insert")
        return await super().insert(transaction)


class FailingIssuer(IdentifierIssuerInterface):

    async def issue(self):
        raise IdentifierIssueError("no uuid")


def make_record() -> PendingRecord:
    return PendingRecord(
        guid="guid-1",
        pending_transaction_id=1,
        account_name_owner="chase_brian",
        transaction_date=date(2024, 2, 25),
        description="Coffee Shop",
        amount=Decimal("-4.50"),
        category="imported",
        category_metadata=RuleBasedProvenance(),
    )


class TestAcceptanceWorkflow:
    """Tests for the issue, insert, delete sequence."""

    def test_steps_run_in_order(self):
        """Test insert happens before the local removal and the delete."""
        log = []
        workflow = AcceptanceWorkflow(
            UuidIdentifierIssuer(),
            RecordingPendingStore([make_remote(1)], log),
            RecordingTransactionStore(log),
        )

        attempt = run(workflow.run(make_record(), on_inserted=lambda r: log.append("removed")))

        assert log == ["insert", "removed", "delete"]
        assert attempt.state == AcceptanceState.ACCEPTED
        assert attempt.inserted is True
        assert attempt.transaction_guid
        assert attempt.finished_at is not None

    def test_delete_failure_reports_inserted(self):
        """Test a delete failure says the permanent record already exists."""
        log = []
        transactions = RecordingTransactionStore(log)
        workflow = AcceptanceWorkflow(
            UuidIdentifierIssuer(),
            RecordingPendingStore([make_remote(1)], log, fail=True),
            transactions,
        )

        with pytest.raises(AcceptanceError) as exc_info:
            run(workflow.run(make_record()))

        error = exc_info.value
        assert error.stage == AcceptanceStage.DELETE.value
        assert isinstance(error.cause, StorageError)
        assert error.attempt.state == AcceptanceState.FAILED
        assert error.attempt.inserted is True
        assert len(transactions.transactions) == 1

    def test_identifier_failure_stops_before_writes(self):
        """Test nothing is written when issuance fails."""
        log = []
        workflow = AcceptanceWorkflow(
            FailingIssuer(),
            RecordingPendingStore([make_remote(1)], log),
            RecordingTransactionStore(log),
        )

        with pytest.raises(AcceptanceError) as exc_info:
            run(workflow.run(make_record()))

        assert exc_info.value.stage == "identifier"
        assert exc_info.value.attempt.inserted is False
        assert log == []
