"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Talk to the finance REST backend, Google Sheets, or memory interchangeably
2. Use in-memory storage for testing
3. Keep the reconciliation logic decoupled from transport

Every method signals failure by raising StorageError (or a subclass).
An empty pending store is an empty list, never an exception.
"""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from transaction_import.models.audit import AuditEvent
from transaction_import.models.transaction import (
    ParsedTransaction,
    PermanentTransaction,
    RemotePendingTransaction,
)


class PendingRecordStoreInterface(ABC):
    """
    The system of record for not-yet-accepted imported transactions.
    """

    @abstractmethod
    async def fetch_all(self) -> list[RemotePendingTransaction]:
        """
        Fetch every pending transaction.

        Returns:
            All pending transactions (possibly empty)

        Raises:
            StorageError: If the fetch fails
        """
        pass

    @abstractmethod
    async def insert(
        self,
        transaction: ParsedTransaction,
    ) -> RemotePendingTransaction:
        """
        Stage a parsed transaction as a pending record.

        Returns:
            The stored record, carrying its server-assigned id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        pending_transaction_id: int,
        patch: dict[str, Any],
    ) -> RemotePendingTransaction:
        """
        Update one pending transaction.

        Args:
            pending_transaction_id: Server id of the record
            patch: Field name -> new value (snake_case field names)

        Raises:
            StorageError: If the update fails
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, pending_transaction_id: int) -> None:
        """
        Delete one pending transaction.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def delete_all(self) -> None:
        """
        Delete every pending transaction.

        Raises:
            StorageError: If the delete fails
        """
        pass


class TransactionStoreInterface(ABC):
    """
    The permanent transaction store accepted records are promoted into.
    """

    @abstractmethod
    async def insert(
        self,
        transaction: PermanentTransaction,
    ) -> PermanentTransaction:
        """
        Insert a permanent transaction.

        The caller never retries automatically; a manual retry after a
        partial accept may create a duplicate, which is acceptable.

        Returns:
            The stored transaction

        Raises:
            StorageError: If the insert fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import session).

        Returns:
            List of related events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
