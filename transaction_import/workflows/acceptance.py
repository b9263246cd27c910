"""
Acceptance Workflow

Promotes exactly one pending record into a permanent transaction:

    1. issue a fresh identifier
    2. insert the permanent transaction
    3. (caller removes the record from its working set)
    4. delete the pending record

The steps run strictly in this order and are never parallelized.

CRITICAL: insert happens before delete. There is no distributed
transaction, so the worst case is a duplicate (inserted, pending not yet
deleted), never a loss (pending deleted, never inserted).
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

from transaction_import.errors import AcceptanceError, IdentifierIssueError
from transaction_import.models.transaction import PendingRecord, utcnow
from transaction_import.services.identifiers import IdentifierIssuerInterface
from transaction_import.services.storage.interface import (
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)


logger = structlog.get_logger(__name__)


class AcceptanceState(str, Enum):
    IDLE = "idle"
    ACCEPTING = "accepting"
    ACCEPTED = "accepted"
    FAILED = "failed"


class AcceptanceStage(str, Enum):
    """Step an attempt failed at."""
    IDENTIFIER = "identifier"
    INSERT = "insert"
    DELETE = "delete"


class AcceptanceAttempt(BaseModel):
    """State of one accept attempt for one record."""

    guid: str
    pending_transaction_id: int
    state: AcceptanceState = AcceptanceState.IDLE
    transaction_guid: Optional[str] = Field(
        default=None,
        description="Identifier issued for the permanent transaction"
    )
    failed_stage: Optional[AcceptanceStage] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def inserted(self) -> bool:
        """True once the permanent transaction exists."""
        return self.state == AcceptanceState.ACCEPTED or (
            self.failed_stage == AcceptanceStage.DELETE
        )


class AcceptanceWorkflow:
    """
    Runs accept attempts against the identifier issuer and both stores.

    Holds no per-record state, so one workflow serves every row of a
    session; attempts on different records may interleave freely.
    """

    def __init__(
        self,
        identifier_issuer: IdentifierIssuerInterface,
        pending_store: PendingRecordStoreInterface,
        transaction_store: TransactionStoreInterface,
    ):
        self._issuer = identifier_issuer
        self._pending_store = pending_store
        self._transaction_store = transaction_store

    def _fail(
        self,
        attempt: AcceptanceAttempt,
        stage: AcceptanceStage,
        error: Exception,
    ) -> AcceptanceError:
        attempt.state = AcceptanceState.FAILED
        attempt.failed_stage = stage
        attempt.error_message = str(error)
        attempt.finished_at = utcnow()
        logger.warning(
            "acceptance_failed",
            guid=attempt.guid,
            stage=stage.value,
            error=str(error),
        )
        return AcceptanceError(stage.value, str(error), cause=error, attempt=attempt)

    async def run(
        self,
        record: PendingRecord,
        on_inserted: Optional[Callable[[PendingRecord], None]] = None,
    ) -> AcceptanceAttempt:
        """
        Accept one record.

        Args:
            record: The record with its current (possibly edited) values
            on_inserted: Called after the insert and before the pending
                delete; used for the optimistic local removal

        Returns:
            The ACCEPTED attempt

        Raises:
            AcceptanceError: With the failing stage and the FAILED attempt
        """
        attempt = AcceptanceAttempt(
            guid=record.guid,
            pending_transaction_id=record.pending_transaction_id,
            state=AcceptanceState.ACCEPTING,
        )

        try:
            attempt.transaction_guid = await self._issuer.issue()
        except IdentifierIssueError as e:
            # Nothing has been written anywhere yet
            raise self._fail(attempt, AcceptanceStage.IDENTIFIER, e)

        try:
            await self._transaction_store.insert(
                record.to_permanent(attempt.transaction_guid)
            )
        except StorageError as e:
            raise self._fail(attempt, AcceptanceStage.INSERT, e)

        if on_inserted is not None:
            on_inserted(record)

        try:
            await self._pending_store.delete(record.pending_transaction_id)
        except StorageError as e:
            raise self._fail(attempt, AcceptanceStage.DELETE, e)

        attempt.state = AcceptanceState.ACCEPTED
        attempt.finished_at = utcnow()
        logger.info(
            "acceptance_completed",
            guid=record.guid,
            transaction_guid=attempt.transaction_guid,
        )
        return attempt
