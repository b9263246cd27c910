"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can stand in for the finance backend because:
1. Non-technical users can review pending imports directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Pending ids are allocated as max(id) + 1, so concurrent writers from
  two sessions can collide

The implementation follows the abstract interface, so the session never
knows which backend it is talking to.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from transaction_import.config import GoogleSheetsSettings, get_settings
from transaction_import.models.audit import AuditEvent, AuditEventType, AuditSeverity
from transaction_import.models.transaction import (
    ParsedTransaction,
    PermanentTransaction,
    RemotePendingTransaction,
)
from transaction_import.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for the PendingTransactions sheet
PENDING_COLUMNS = [
    "pending_transaction_id",
    "account_name_owner",
    "transaction_date",
    "description",
    "amount",
    "review_status",
    "owner",
]

# Column mappings for the Transactions sheet
TRANSACTION_COLUMNS = [
    "guid",
    "account_name_owner",
    "transaction_date",
    "description",
    "category",
    "amount",
    "transaction_state",
    "transaction_type",
    "reoccurring_type",
    "account_type",
    "active_status",
    "notes",
    "due_date",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list):
    """Row accessor tolerating short rows and empty cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_pending_sheet(self) -> gspread.Worksheet:
        """Get or create the pending transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.pending_sheet_name, PENDING_COLUMNS
        )

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the accepted transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsPendingStore(PendingRecordStoreInterface):
    """
    Pending transactions as rows of a worksheet, one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: RemotePendingTransaction) -> list:
        return [
            str(record.pending_transaction_id),
            record.account_name_owner,
            record.transaction_date.isoformat(),
            record.description,
            str(record.amount),
            record.review_status,
            record.owner or "",
        ]

    def _row_to_record(self, row: list) -> RemotePendingTransaction:
        safe_get = _safe_getter(row)
        return RemotePendingTransaction(
            pending_transaction_id=int(safe_get(0)),
            account_name_owner=safe_get(1),
            transaction_date=date.fromisoformat(safe_get(2)),
            description=safe_get(3),
            amount=Decimal(safe_get(4)),
            review_status=safe_get(5, "pending"),
            owner=safe_get(6) or None,
        )

    def _find_row(self, all_rows: list[list], pending_transaction_id: int) -> int:
        """1-based sheet row index of a record (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(pending_transaction_id):
                return idx
        raise NotFoundError(f"Pending transaction not found: {pending_transaction_id}")

    def _fetch_all(self) -> list[RemotePendingTransaction]:
        all_rows = self._client.get_pending_sheet().get_all_values()[1:]  # Skip header

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(self._row_to_record(row))
            except (ValueError, ArithmeticError) as e:
                logger.warning("pending_row_skipped", row=row[0], error=str(e))
        return records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_all(self) -> list[RemotePendingTransaction]:
        try:
            return await asyncio.to_thread(self._fetch_all)
        except Exception as e:
            raise StorageError(f"Failed to fetch pending transactions: {e}")

    def _insert(self, transaction: ParsedTransaction) -> RemotePendingTransaction:
        sheet = self._client.get_pending_sheet()
        ids = [
            int(row[0]) for row in sheet.get_all_values()[1:]
            if row and row[0].isdigit()
        ]
        record = RemotePendingTransaction(
            pending_transaction_id=max(ids, default=0) + 1,
            account_name_owner=transaction.account_name_owner,
            transaction_date=transaction.transaction_date,
            description=transaction.description,
            amount=transaction.amount,
        )
        sheet.append_row(self._record_to_row(record), value_input_option="RAW")
        return record

    async def insert(
        self,
        transaction: ParsedTransaction,
    ) -> RemotePendingTransaction:
        try:
            return await asyncio.to_thread(self._insert, transaction)
        except Exception as e:
            raise StorageError(f"Failed to insert pending transaction: {e}")

    def _update(
        self,
        pending_transaction_id: int,
        patch: dict[str, Any],
    ) -> RemotePendingTransaction:
        sheet = self._client.get_pending_sheet()
        all_rows = sheet.get_all_values()
        idx = self._find_row(all_rows, pending_transaction_id)

        current = self._row_to_record(all_rows[idx - 1])
        updated = RemotePendingTransaction.model_validate({
            **current.model_dump(),
            **patch,
            "pending_transaction_id": pending_transaction_id,
        })
        sheet.update(
            range_name=f"A{idx}",
            values=[self._record_to_row(updated)],
            value_input_option="RAW",
        )
        return updated

    async def update(
        self,
        pending_transaction_id: int,
        patch: dict[str, Any],
    ) -> RemotePendingTransaction:
        try:
            return await asyncio.to_thread(self._update, pending_transaction_id, patch)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update pending transaction: {e}")

    def _delete(self, pending_transaction_id: int) -> None:
        sheet = self._client.get_pending_sheet()
        idx = self._find_row(sheet.get_all_values(), pending_transaction_id)
        sheet.delete_rows(idx)

    async def delete(self, pending_transaction_id: int) -> None:
        try:
            await asyncio.to_thread(self._delete, pending_transaction_id)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete pending transaction: {e}")

    def _delete_all(self) -> None:
        sheet = self._client.get_pending_sheet()
        row_count = len(sheet.get_all_values())
        if row_count > 1:
            sheet.delete_rows(2, row_count)

    async def delete_all(self) -> None:
        try:
            await asyncio.to_thread(self._delete_all)
        except Exception as e:
            raise StorageError(f"Failed to delete pending transactions: {e}")


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Accepted transactions, one per row.

    Inserts are never retried: a retry after a lost response could write
    the same transaction twice.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: PermanentTransaction) -> list:
        return [
            transaction.guid,
            transaction.account_name_owner,
            transaction.transaction_date.isoformat(),
            transaction.description,
            transaction.category,
            str(transaction.amount),
            transaction.transaction_state.value,
            transaction.transaction_type.value,
            transaction.reoccurring_type.value,
            transaction.account_type.value,
            str(transaction.active_status),
            transaction.notes,
            transaction.due_date.isoformat() if transaction.due_date else "",
        ]

    def _insert(self, transaction: PermanentTransaction) -> PermanentTransaction:
        sheet = self._client.get_transactions_sheet()
        existing = sheet.col_values(1)[1:]
        if transaction.guid in existing:
            raise DuplicateError(f"Transaction already exists: {transaction.guid}")
        sheet.append_row(
            self._transaction_to_row(transaction),
            value_input_option="RAW",
        )
        return transaction

    async def insert(
        self,
        transaction: PermanentTransaction,
    ) -> PermanentTransaction:
        try:
            return await asyncio.to_thread(self._insert, transaction)
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert transaction: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _append_event(self, event: AuditEvent) -> None:
        self._client.get_audit_sheet().append_row(
            event.to_sheets_row(), value_input_option="RAW"
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append_event, event)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e))
            return False

    def _events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        all_rows = self._client.get_audit_sheet().get_all_values()[1:]

        events = []
        for row in all_rows:
            if row and len(row) > 6 and row[6] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            return await asyncio.to_thread(self._events_for, correlation_id)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
