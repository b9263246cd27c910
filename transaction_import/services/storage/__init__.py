"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Backends: the finance REST API, Google Sheets, and memory (offline/tests).
"""

from transaction_import.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)
from transaction_import.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPendingStore,
    InMemoryTransactionStore,
)
from transaction_import.services.storage.http_api import (
    FinanceApiClient,
    HttpPendingStore,
    HttpTransactionStore,
)
from transaction_import.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPendingStore,
    GoogleSheetsTransactionStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PendingRecordStoreInterface",
    "TransactionStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPendingStore",
    "InMemoryTransactionStore",
    # Finance API implementation
    "FinanceApiClient",
    "HttpPendingStore",
    "HttpTransactionStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPendingStore",
    "GoogleSheetsTransactionStore",
]
