"""
In-Memory Storage Implementation

Used for offline runs and tests. Behaves like the remote stores: it
hands out copies, assigns ids on insert, and raises the same exceptions.
"""

from itertools import count
from typing import Any, Optional
from uuid import UUID

from transaction_import.models.audit import AuditEvent
from transaction_import.models.transaction import (
    ParsedTransaction,
    PermanentTransaction,
    RemotePendingTransaction,
)
from transaction_import.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)


class InMemoryPendingStore(PendingRecordStoreInterface):
    """Pending transactions kept in insertion order."""

    def __init__(self, records: Optional[list[RemotePendingTransaction]] = None):
        self._records: dict[int, RemotePendingTransaction] = {}
        for record in records or []:
            self._records[record.pending_transaction_id] = record
        start = max(self._records, default=0) + 1
        self._ids = count(start)

    async def fetch_all(self) -> list[RemotePendingTransaction]:
        return [r.model_copy() for r in self._records.values()]

    async def insert(
        self,
        transaction: ParsedTransaction,
    ) -> RemotePendingTransaction:
        record = RemotePendingTransaction(
            pending_transaction_id=next(self._ids),
            account_name_owner=transaction.account_name_owner,
            transaction_date=transaction.transaction_date,
            description=transaction.description,
            amount=transaction.amount,
        )
        self._records[record.pending_transaction_id] = record
        return record.model_copy()

    async def update(
        self,
        pending_transaction_id: int,
        patch: dict[str, Any],
    ) -> RemotePendingTransaction:
        current = self._records.get(pending_transaction_id)
        if current is None:
            raise NotFoundError(
                f"Pending transaction not found: {pending_transaction_id}"
            )
        try:
            updated = RemotePendingTransaction.model_validate({
                **current.model_dump(),
                **patch,
                "pending_transaction_id": pending_transaction_id,
            })
        except ValueError as e:
            raise StorageError(f"Invalid update: {e}")
        self._records[pending_transaction_id] = updated
        return updated.model_copy()

    async def delete(self, pending_transaction_id: int) -> None:
        if self._records.pop(pending_transaction_id, None) is None:
            raise NotFoundError(
                f"Pending transaction not found: {pending_transaction_id}"
            )

    async def delete_all(self) -> None:
        self._records.clear()


class InMemoryTransactionStore(TransactionStoreInterface):
    """Permanent transactions keyed by guid."""

    def __init__(self):
        self._transactions: dict[str, PermanentTransaction] = {}

    async def insert(
        self,
        transaction: PermanentTransaction,
    ) -> PermanentTransaction:
        if transaction.guid in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.guid}")
        self._transactions[transaction.guid] = transaction
        return transaction.model_copy()

    @property
    def transactions(self) -> list[PermanentTransaction]:
        return list(self._transactions.values())

    def get(self, guid: str) -> Optional[PermanentTransaction]:
        return self._transactions.get(guid)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)
