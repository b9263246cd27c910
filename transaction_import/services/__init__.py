"""Services package."""

from transaction_import.services.identifiers import (
    HttpIdentifierIssuer,
    IdentifierIssuerInterface,
    UuidIdentifierIssuer,
)
from transaction_import.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinanceApiClient,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPendingStore,
    GoogleSheetsTransactionStore,
    HttpPendingStore,
    HttpTransactionStore,
    InMemoryAuditStorage,
    InMemoryPendingStore,
    InMemoryTransactionStore,
    NotFoundError,
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)

__all__ = [
    # Identifier issuers
    "HttpIdentifierIssuer",
    "IdentifierIssuerInterface",
    "UuidIdentifierIssuer",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "FinanceApiClient",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPendingStore",
    "GoogleSheetsTransactionStore",
    "HttpPendingStore",
    "HttpTransactionStore",
    "InMemoryAuditStorage",
    "InMemoryPendingStore",
    "InMemoryTransactionStore",
    "NotFoundError",
    "PendingRecordStoreInterface",
    "StorageError",
    "TransactionStoreInterface",
]
