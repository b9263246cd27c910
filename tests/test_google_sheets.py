"""
Tests for the Google Sheets backend against an in-memory worksheet.
"""

import threading
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from transaction_import.models.audit import AuditEventBuilder
from transaction_import.models.transaction import ParsedTransaction, PermanentTransaction
from transaction_import.services import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsPendingStore,
    GoogleSheetsTransactionStore,
    NotFoundError,
)
from transaction_import.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    PENDING_COLUMNS,
    TRANSACTION_COLUMNS,
)

from conftest import run


class FakeWorksheet:
    """The slice of gspread.Worksheet the stores use."""

    def __init__(self, header, rows=()):
        self.rows = [list(header)] + [list(r) for r in rows]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(c) for c in row])

    def update(self, range_name, values, value_input_option=None):
        self.rows[int(range_name[1:]) - 1] = [str(c) for c in values[0]]

    def delete_rows(self, start, end=None):
        del self.rows[start - 1:(end or start)]

    def col_values(self, col):
        return [r[col - 1] for r in self.rows if len(r) >= col]


class FakeSheetsClient:

    def __init__(self, pending_rows=()):
        self.pending = FakeWorksheet(PENDING_COLUMNS, pending_rows)
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_pending_sheet(self):
        return self.pending

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


def parsed(description="Coffee Shop") -> ParsedTransaction:
    return ParsedTransaction(
        transaction_date=date(2024, 2, 25),
        description=description,
        amount=Decimal("-4.50"),
        category="imported",
        account_name_owner="chase_brian",
    )


class TestGoogleSheetsPendingStore:
    """Tests for pending records stored as rows."""

    def test_insert_and_fetch(self):
        """Test inserted rows get max+1 ids and read back intact."""
        client = FakeSheetsClient([
            ["4", "amex_kari", "2024-01-05", "Target", "-25.50", "pending", ""],
        ])
        store = GoogleSheetsPendingStore(client)

        inserted = run(store.insert(parsed()))
        records = run(store.fetch_all())

        assert inserted.pending_transaction_id == 5
        assert [r.pending_transaction_id for r in records] == [4, 5]
        assert records[1].amount == Decimal("-4.50")
        assert records[1].transaction_date == date(2024, 2, 25)

    def test_sheet_calls_leave_the_event_loop(self):
        """Test gspread calls run in a worker thread, not on the loop."""
        seen = []

        class RecordingWorksheet(FakeWorksheet):
            def get_all_values(self):
                seen.append(threading.get_ident())
                return super().get_all_values()

        client = FakeSheetsClient()
        client.pending = RecordingWorksheet(PENDING_COLUMNS)

        run(GoogleSheetsPendingStore(client).fetch_all())

        assert seen and threading.get_ident() not in seen

    def test_malformed_rows_skipped(self):
        """Test an unreadable row is skipped, not fatal."""
        client = FakeSheetsClient([
            ["1", "acct", "not-a-date", "x", "1.00", "pending", ""],
            ["2", "acct", "2024-01-01", "ok", "1.00", "pending", ""],
        ])

        records = run(GoogleSheetsPendingStore(client).fetch_all())

        assert [r.pending_transaction_id for r in records] == [2]

    def test_update_rewrites_row(self):
        """Test updates rewrite the record's row in place."""
        client = FakeSheetsClient([
            ["1", "acct", "2024-01-01", "Coffee Shop", "-4.50", "pending", ""],
        ])
        store = GoogleSheetsPendingStore(client)

        updated = run(store.update(1, {"description": "Coffee House"}))

        assert updated.description == "Coffee House"
        assert client.pending.rows[1][3] == "Coffee House"

    def test_delete_missing_raises(self):
        """Test deleting an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            run(GoogleSheetsPendingStore(FakeSheetsClient()).delete(3))

    def test_delete_all_keeps_header(self):
        """Test the bulk delete leaves only the header row."""
        client = FakeSheetsClient([
            ["1", "acct", "2024-01-01", "a", "1.00", "pending", ""],
            ["2", "acct", "2024-01-01", "b", "1.00", "pending", ""],
        ])

        run(GoogleSheetsPendingStore(client).delete_all())

        assert client.pending.rows == [PENDING_COLUMNS]


class TestGoogleSheetsTransactionStore:
    """Tests for accepted transactions stored as rows."""

    def test_duplicate_guid_rejected(self):
        """Test a guid already on the sheet is a DuplicateError."""
        client = FakeSheetsClient()
        store = GoogleSheetsTransactionStore(client)
        transaction = PermanentTransaction(
            guid="tx-1",
            account_name_owner="acct",
            transaction_date=date(2024, 1, 1),
            description="Target",
            category="target",
            amount=Decimal("-20.00"),
        )

        run(store.insert(transaction))
        with pytest.raises(DuplicateError):
            run(store.insert(transaction))
        assert len(client.transactions.rows) == 2


class TestGoogleSheetsAuditStorage:
    """Tests for audit rows."""

    def test_events_read_back_by_correlation_id(self):
        """Test appended events can be read back for their session."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()

        run(storage.append_event(AuditEventBuilder.records_staged(2, correlation_id)))
        run(storage.append_event(AuditEventBuilder.records_staged(1, uuid4())))
        events = run(storage.get_events_by_correlation_id(correlation_id))

        assert len(events) == 1
        assert events[0].details == {"count": 2}
