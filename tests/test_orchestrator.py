"""
Integration tests for the import flow (in-memory backend).
"""

import pytest

from transaction_import.errors import PipelineUnavailableError
from transaction_import.models.operations import OperationOutcome
from transaction_import.notifications import NotificationLevel
from transaction_import.orchestrator import ImportFlow, create_app_components
from transaction_import.services import InMemoryPendingStore, StorageError

from conftest import run


class FailAfterPendingStore(InMemoryPendingStore):
    """Accepts a fixed number of inserts, then fails."""

    def __init__(self, allowed):
        super().__init__()
        self._allowed = allowed

    async def insert(self, transaction):
        if self._allowed <= 0:
            raise StorageError("insert down")
        self._allowed -= 1
        return await super().insert(transaction)



class FetchDownPendingStore(InMemoryPendingStore):

    async def fetch_all(self):
        raise StorageError("fetch down")

@pytest.fixture
def make_flow(context, make_session):
    def factory(pending_store):
        session = make_session(pending_store=pending_store)
        return ImportFlow(context, session, pending_store)
    return factory


class TestImportFlow:
    """Tests for parse, stage and adopt."""

    def test_import_text_stages_valid_lines(self, make_flow):
        """Test valid lines become pending records in the session."""
        store = InMemoryPendingStore()
        flow = make_flow(store)
        text = (
            "2024-02-25 Shell Gas Station -40.00\n"
            "not a valid line\n"
            "2024-02-26 Salary 2000.00"
        )

        parse_result, staged = run(flow.import_text(text, "chase_brian"))

        assert parse_result.success_count == 2
        assert staged.outcome == OperationOutcome.COMMITTED
        assert len(run(store.fetch_all())) == 2
        records = flow.session.records
        assert [r.category for r in records] == ["fuel", "imported"]
        assert all(r.account_name_owner == "chase_brian" for r in records)
        latest = flow.session.notifications.latest()
        assert latest.level == NotificationLevel.WARNING
        assert "1 lines failed to parse" in latest.message

    def test_clean_import_notifies_success(self, make_flow):
        """Test a clean import ends with a success notification."""
        flow = make_flow(InMemoryPendingStore())

        run(flow.import_text("2024-02-25 Coffee Shop -4.50"))

        assert flow.session.notifications.latest().level == NotificationLevel.SUCCESS

    def test_nothing_to_stage(self, make_flow):
        """Test an all-invalid paste stages nothing."""
        store = InMemoryPendingStore()
        flow = make_flow(store)

        _, staged = run(flow.import_text("garbage"))

        assert staged.outcome == OperationOutcome.REFUSED
        assert run(store.fetch_all()) == []
        assert flow.session.notifications.latest().message == "No valid transactions to import."

    def test_stage_failure_resyncs(self, make_flow):
        """Test a failed insert stops staging and rebuilds from the store."""
        flow = make_flow(FailAfterPendingStore(allowed=1))

        _, staged = run(flow.import_text(
            "2024-02-25 Coffee Shop -4.50\n2024-02-26 Target -20.00"
        ))

        assert staged.outcome == OperationOutcome.ROLLED_BACK
        assert staged.message == "Staged 1 of 2: insert down"
        assert [r.description for r in flow.session.records] == ["Coffee Shop"]

    def test_adopt_failure_notifies(self, make_flow):
        """Test a failed load after staging is reported, not raised."""
        store = FetchDownPendingStore()
        flow = make_flow(store)

        _, staged = run(flow.import_text("2024-02-25 Coffee Shop -4.50"))

        assert staged.outcome == OperationOutcome.PENDING
        assert len(store._records) == 1
        assert flow.session.is_loaded is False
        latest = flow.session.notifications.latest()
        assert latest.level == NotificationLevel.ERROR
        assert latest.message == "stage: fetch down"

    def test_adopt_into_loaded_session(self, make_flow):
        """Test a second import adds to an already loaded working set."""
        flow = make_flow(InMemoryPendingStore())

        run(flow.import_text("2024-02-25 Coffee Shop -4.50"))
        run(flow.import_text("2024-02-26 Target -20.00"))

        assert len(flow.session) == 2

    def test_validate_gates_submit(self, make_flow):
        """Test the pre-submit check agrees with the parser."""
        flow = make_flow(InMemoryPendingStore())

        assert flow.validate("2024-02-25 Coffee Shop -4.50").can_submit is True
        result = flow.validate("2024-02-25 Coffee Shop -4.5")
        assert result.can_submit is False
        assert 'Line 1: "2024-02-25 Coffee Shop -4.5"' in flow.get_validation_summary(result)

    def test_parse_requires_auth(self, make_flow, context):
        """Test parsing is gated on authentication."""
        flow = make_flow(InMemoryPendingStore())
        context.set_status(False)

        with pytest.raises(PipelineUnavailableError):
            run(flow.parse("2024-02-25 Coffee Shop -4.50"))


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self, context):
        """Test the memory backend wires a working flow."""
        flow, session = create_app_components(context, backend="memory", use_ai=False)

        run(flow.import_text("2024-02-25 Coffee Shop -4.50"))

        assert flow.session is session
        assert len(session) == 1

    def test_ai_disabled_without_key(self, context, monkeypatch):
        """Test a missing Gemini key disables AI instead of failing."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        _, session = create_app_components(context, backend="memory", use_ai=True)
        run(session.load())

        assert run(session.ai_categorize("missing")).outcome == OperationOutcome.REFUSED

    def test_unknown_backend(self, context):
        """Test an unknown backend name is rejected."""
        with pytest.raises(ValueError):
            create_app_components(context, backend="ftp")
