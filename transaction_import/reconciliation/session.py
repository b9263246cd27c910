"""
Local Reconciliation Layer

ImportSession owns the in-memory working set of pending records and keeps
it consistent with the pending store.

RULES:
1. After the initial load the working set is authoritative locally. Remote
   fetches are only applied again through resync().
2. Mutations are optimistic: the local change happens first, then the
   remote call.
3. Any remote mutation failure rebuilds the whole working set from a full
   fetch. Nothing is ever patched back in by hand.
4. Each record has exactly one RowState. A record that is not IDLE cannot
   start another operation. Bulk discard has its own flag. A resync keeps
   the guids of surviving and busy records, so row state outlives it.
5. Every async completion re-checks that its record is still in the
   working set before writing (stale-write guard).

Per-record failures never escape: they become notifications and an
OperationResult. Only PipelineUnavailableError (auth gating) and a failed
load() raise.
"""

from typing import Any, Callable, Optional, Sequence
from uuid import UUID, uuid4

import structlog

from transaction_import.agents.categorization_agent import (
    CategorizationError,
    CategorizationServiceInterface,
)
from transaction_import.audit import AuditLogger, create_correlation_id
from transaction_import.categorization import RuleBasedCategorizer
from transaction_import.config import ImportSettings, get_settings
from transaction_import.context import PipelineContext
from transaction_import.errors import AcceptanceError
from transaction_import.models.operations import (
    OperationOutcome,
    OperationResult,
    RowState,
    SessionAction,
)
from transaction_import.models.transaction import (
    REMOTE_FIELDS,
    PendingRecord,
    RemotePendingTransaction,
)
from transaction_import.notifications import NotificationCenter
from transaction_import.services.identifiers import (
    IdentifierIssuerInterface,
    UuidIdentifierIssuer,
)
from transaction_import.services.storage.interface import (
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)
from transaction_import.workflows.acceptance import AcceptanceWorkflow


logger = structlog.get_logger(__name__)


class ImportSession:
    """
    The working set of one import screen.

    Usage:
        session = ImportSession(context, pending_store, transaction_store)
        await session.load()
        await session.accept(guid)
    """

    def __init__(
        self,
        context: PipelineContext,
        pending_store: PendingRecordStoreInterface,
        transaction_store: TransactionStoreInterface,
        identifier_issuer: Optional[IdentifierIssuerInterface] = None,
        ai_service: Optional[CategorizationServiceInterface] = None,
        categorizer: Optional[RuleBasedCategorizer] = None,
        notifications: Optional[NotificationCenter] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ImportSettings] = None,
        correlation_id: Optional[UUID] = None,
        guid_factory: Optional[Callable[[], str]] = None,
    ):
        self._context = context
        self._pending_store = pending_store
        self._ai_service = ai_service
        self._settings = settings or get_settings().importer
        self._categorizer = categorizer or RuleBasedCategorizer(
            default_category=self._settings.default_category
        )
        self._notifications = notifications or NotificationCenter()
        self._audit = audit_logger or AuditLogger()
        self._correlation_id = correlation_id or create_correlation_id()
        self._new_guid = guid_factory or (lambda: str(uuid4()))
        self._workflow = AcceptanceWorkflow(
            identifier_issuer or UuidIdentifierIssuer(),
            pending_store,
            transaction_store,
        )

        self._records: list[PendingRecord] = []
        self._row_states: dict[str, RowState] = {}
        self._busy_ids: dict[int, str] = {}
        self._is_bulk_deleting = False
        self._needs_resync = False
        self._loaded = False

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def records(self) -> list[PendingRecord]:
        return list(self._records)

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_bulk_deleting(self) -> bool:
        return self._is_bulk_deleting

    @property
    def needs_resync(self) -> bool:
        return self._needs_resync

    def __len__(self) -> int:
        return len(self._records)

    def get(self, guid: str) -> Optional[PendingRecord]:
        for record in self._records:
            if record.guid == guid:
                return record
        return None

    def row_state(self, guid: str) -> RowState:
        return self._row_states.get(guid, RowState.IDLE)

    def accounts(self) -> list[str]:
        """Distinct account names, in order of first appearance."""
        seen = []
        for record in self._records:
            owner = record.account_name_owner
            if owner and owner not in seen:
                seen.append(owner)
        return seen

    def filter_by_account(self, account_name_owner: Optional[str]) -> list[PendingRecord]:
        """Records for one account; all records when no account is given."""
        if not account_name_owner:
            return self.records
        return [r for r in self._records if r.account_name_owner == account_name_owner]

    # =========================================================================
    # WORKING-SET PRIMITIVES
    # =========================================================================

    def _transform(
        self,
        remote: RemotePendingTransaction,
        guid: Optional[str] = None,
    ) -> PendingRecord:
        """Remote pending record -> local record with rule-based category."""
        category, provenance = self._categorizer.categorize_with_provenance(
            remote.description,
            self._settings.initial_load_reason,
        )
        return PendingRecord(
            guid=guid or self._new_guid(),
            pending_transaction_id=remote.pending_transaction_id,
            account_name_owner=remote.account_name_owner,
            transaction_date=remote.transaction_date,
            description=remote.description,
            amount=remote.amount,
            category=category,
            category_metadata=provenance,
            notes="imported",
            review_status=remote.review_status,
        )

    def _remove(self, guid: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r.guid != guid]
        return len(self._records) != before

    def _replace(self, record: PendingRecord) -> bool:
        """Swap in a new version of a record; False if it is gone."""
        for index, current in enumerate(self._records):
            if current.guid == record.guid:
                self._records[index] = record
                return True
        return False

    def _result(
        self,
        action: SessionAction,
        outcome: OperationOutcome,
        guid: Optional[str] = None,
        message: str = "",
    ) -> OperationResult:
        return OperationResult(action=action, guid=guid, outcome=outcome, message=message)

    def _refuse_busy(self, action: SessionAction, guid: str) -> Optional[OperationResult]:
        """REFUSED result if the record is missing or busy, else None."""
        if self.get(guid) is None:
            return self._result(
                action, OperationOutcome.REFUSED, guid, "Record is not in the working set"
            )
        state = self.row_state(guid)
        if state != RowState.IDLE:
            return self._result(
                action, OperationOutcome.REFUSED, guid, f"Record is busy ({state.value})"
            )
        return None

    def _mark_busy(self, record: PendingRecord, state: RowState) -> None:
        self._row_states[record.guid] = state
        self._busy_ids[record.pending_transaction_id] = record.guid

    def _clear_busy(self, guid: str) -> None:
        self._row_states.pop(guid, None)
        self._busy_ids = {k: v for k, v in self._busy_ids.items() if v != guid}

    # =========================================================================
    # LOAD / RESYNC
    # =========================================================================

    async def _refetch(self) -> int:
        """
        Replace the working set with a full fetch. Raises StorageError.

        A pending id that is still local or busy keeps its guid, so an
        in-flight operation still owns its row after the rebuild.
        """
        remote = await self._pending_store.fetch_all()
        known = {r.pending_transaction_id: r.guid for r in self._records}
        known.update(self._busy_ids)
        self._records = [
            self._transform(r, known.get(r.pending_transaction_id)) for r in remote
        ]
        self._loaded = True
        self._needs_resync = False
        return len(self._records)

    async def load(self) -> list[PendingRecord]:
        """
        Initial load.

        Transforms the remote pending records once. Later calls return the
        working set untouched unless a resync is pending.

        Raises:
            PipelineUnavailableError: If the context cannot run
            StorageError: If the fetch fails (an empty store is not an error)
        """
        self._context.ensure_can_run(SessionAction.LOAD.value)

        if self._loaded and not self._needs_resync:
            return self.records

        first_load = not self._loaded
        try:
            count = await self._refetch()
        except StorageError as e:
            await self._audit.log_external_service_error(
                "pending_store", str(e), self._correlation_id
            )
            raise

        if first_load:
            await self._audit.log_initial_load(count, self._correlation_id)
        else:
            await self._audit.log_resync("load", count, self._correlation_id)
        return self.records

    async def resync(self, reason: str = "manual") -> OperationResult:
        """
        Rebuild the working set from a full fetch.

        This is the only rollback path. The needs-resync flag is armed
        first and only cleared once the fetch succeeds, so a failed resync
        leaves the next load() authoritative.
        """
        self._context.ensure_can_run(SessionAction.RESYNC.value)
        return await self._resync(reason)

    async def _resync(self, reason: str) -> OperationResult:
        self._needs_resync = True

        try:
            count = await self._refetch()
        except StorageError as e:
            self._notifications.failure(SessionAction.RESYNC.value, e)
            await self._audit.log_resync_failed(reason, str(e), self._correlation_id)
            return self._result(
                SessionAction.RESYNC,
                OperationOutcome.PENDING,
                message=f"Resync failed: {e}",
            )

        await self._audit.log_resync(reason, count, self._correlation_id)
        return self._result(
            SessionAction.RESYNC,
            OperationOutcome.ROLLED_BACK,
            message=f"Working set rebuilt from {count} pending records",
        )

    async def _roll_back(
        self,
        action: SessionAction,
        guid: Optional[str],
        error: Exception,
        stage: Optional[str] = None,
    ) -> OperationResult:
        """Report a failed remote mutation and resync."""
        self._notifications.failure(action.value, error, guid=guid)
        await self._audit.log_operation_failed(
            action=action.value,
            guid=guid,
            error_message=str(error),
            correlation_id=self._correlation_id,
            stage=stage,
        )
        resync = await self._resync(f"{action.value} failed")
        return self._result(action, resync.outcome, guid, f"{action.value}: {error}")

    async def adopt(
        self,
        remote_records: Sequence[RemotePendingTransaction],
    ) -> list[PendingRecord]:
        """
        Add freshly staged pending records to a loaded working set.

        Records whose pending id is already present are skipped. Before the
        first load this is a plain load(), which picks the new records up.
        """
        self._context.ensure_can_run(SessionAction.STAGE.value)

        if not self._loaded or self._needs_resync:
            await self.load()
            staged_ids = {r.pending_transaction_id for r in remote_records}
            return [r for r in self._records if r.pending_transaction_id in staged_ids]

        known = {r.pending_transaction_id for r in self._records}
        adopted = []
        for remote in remote_records:
            if remote.pending_transaction_id in known:
                continue
            record = self._transform(remote)
            self._records.append(record)
            known.add(remote.pending_transaction_id)
            adopted.append(record)
        return adopted

    # =========================================================================
    # PER-RECORD OPERATIONS
    # =========================================================================

    async def discard(self, guid: str) -> OperationResult:
        """Remove one record locally, then delete it remotely."""
        self._context.ensure_can_run(SessionAction.DISCARD.value)

        refused = self._refuse_busy(SessionAction.DISCARD, guid)
        if refused:
            return refused

        record = self.get(guid)
        self._mark_busy(record, RowState.DISCARDING)
        try:
            self._remove(guid)
            try:
                await self._pending_store.delete(record.pending_transaction_id)
            except StorageError as e:
                return await self._roll_back(SessionAction.DISCARD, guid, e)
            self._remove(guid)

            self._notifications.success(
                "Transaction removed successfully",
                action=SessionAction.DISCARD.value,
                guid=guid,
            )
            await self._audit.log_record_discarded(
                guid, record.pending_transaction_id, self._correlation_id
            )
            return self._result(SessionAction.DISCARD, OperationOutcome.COMMITTED, guid)
        finally:
            self._clear_busy(guid)

    async def edit(self, guid: str, /, **changes: Any) -> OperationResult:
        """
        Apply user edits locally, then push the record to the pending store.

        A category change is stamped as manual. Edits that change nothing
        commit without a remote call.
        """
        self._context.ensure_can_run(SessionAction.EDIT.value)

        refused = self._refuse_busy(SessionAction.EDIT, guid)
        if refused:
            return refused

        current = self.get(guid)
        try:
            updated = current.apply_edit(changes)
        except ValueError as e:
            return self._result(SessionAction.EDIT, OperationOutcome.REFUSED, guid, str(e))

        changed = [
            name for name in sorted(changes)
            if getattr(updated, name) != getattr(current, name)
        ]
        if not changed:
            return self._result(
                SessionAction.EDIT, OperationOutcome.COMMITTED, guid, "No changes"
            )

        self._mark_busy(current, RowState.UPDATING)
        try:
            self._replace(updated)
            patch = updated.to_remote().model_dump(include=set(REMOTE_FIELDS) | {"review_status"})
            try:
                await self._pending_store.update(updated.pending_transaction_id, patch)
            except StorageError as e:
                return await self._roll_back(SessionAction.EDIT, guid, e)

            self._notifications.success(
                "PendingTransaction updated successfully.",
                action=SessionAction.EDIT.value,
                guid=guid,
            )
            await self._audit.log_record_edited(guid, changed, self._correlation_id)
            return self._result(SessionAction.EDIT, OperationOutcome.COMMITTED, guid)
        finally:
            self._clear_busy(guid)

    async def ai_categorize(
        self,
        guid: str,
        known_categories: Optional[Sequence[str]] = None,
    ) -> OperationResult:
        """
        Ask the AI service for one record's category.

        On failure the record keeps its category and provenance.
        """
        self._context.ensure_can_run(SessionAction.AI_CATEGORIZE.value)

        if self._ai_service is None:
            return self._result(
                SessionAction.AI_CATEGORIZE,
                OperationOutcome.REFUSED,
                guid,
                "AI categorization is not configured",
            )

        refused = self._refuse_busy(SessionAction.AI_CATEGORIZE, guid)
        if refused:
            return refused

        record = self.get(guid)
        categories = list(known_categories or self._categorizer.known_categories)
        categories = categories[:self._settings.max_ai_known_categories]

        self._mark_busy(record, RowState.CATEGORIZING)
        try:
            try:
                result = await self._ai_service.categorize(
                    record.description,
                    record.amount,
                    categories,
                    record.account_name_owner,
                )
            except CategorizationError as e:
                self._notifications.warning(
                    f"AI categorization failed: {e}",
                    action=SessionAction.AI_CATEGORIZE.value,
                    guid=guid,
                )
                await self._audit.log_ai_categorization_failed(
                    guid, str(e), self._correlation_id
                )
                return self._result(
                    SessionAction.AI_CATEGORIZE, OperationOutcome.FAILED, guid, str(e)
                )

            # The record may have been removed meanwhile
            current = self.get(guid)
            if current is None:
                logger.info("stale_ai_result_dropped", guid=guid)
                return self._result(
                    SessionAction.AI_CATEGORIZE,
                    OperationOutcome.REFUSED,
                    guid,
                    "Record left the working set before categorization finished",
                )

            self._replace(current.with_category(result.category, result.metadata))
            self._notifications.success(
                f"AI categorization completed: {result.category}",
                action=SessionAction.AI_CATEGORIZE.value,
                guid=guid,
            )
            await self._audit.log_ai_categorized(
                guid, result.category, result.metadata.ai_model, self._correlation_id
            )
            return self._result(
                SessionAction.AI_CATEGORIZE, OperationOutcome.COMMITTED, guid, result.category
            )
        finally:
            self._clear_busy(guid)

    async def accept(self, guid: str) -> OperationResult:
        """Promote one record to a permanent transaction."""
        self._context.ensure_can_run(SessionAction.ACCEPT.value)

        refused = self._refuse_busy(SessionAction.ACCEPT, guid)
        if refused:
            return refused

        record = self.get(guid)
        self._mark_busy(record, RowState.ACCEPTING)
        try:
            try:
                attempt = await self._workflow.run(
                    record,
                    on_inserted=lambda r: self._remove(r.guid),
                )
            except AcceptanceError as e:
                return await self._roll_back(SessionAction.ACCEPT, guid, e, stage=e.stage)
            self._remove(guid)

            self._notifications.success(
                "Transaction added successfully",
                action=SessionAction.ACCEPT.value,
                guid=guid,
            )
            await self._audit.log_record_accepted(
                guid,
                attempt.transaction_guid,
                str(record.amount),
                self._correlation_id,
            )
            return self._result(
                SessionAction.ACCEPT,
                OperationOutcome.COMMITTED,
                guid,
                attempt.transaction_guid,
            )
        finally:
            self._clear_busy(guid)

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    async def discard_all(self) -> OperationResult:
        """
        Delete every pending record.

        On success the working set is cleared and then confirmed by a
        resync. On failure the working set is left untouched.
        """
        self._context.ensure_can_run(SessionAction.DISCARD_ALL.value)

        if self._is_bulk_deleting:
            return self._result(
                SessionAction.DISCARD_ALL,
                OperationOutcome.REFUSED,
                message="Bulk discard already in progress",
            )

        self._is_bulk_deleting = True
        try:
            count = len(self._records)
            try:
                await self._pending_store.delete_all()
            except StorageError as e:
                # Remote state is unknown; the next load() refetches
                self._needs_resync = True
                self._notifications.failure(SessionAction.DISCARD_ALL.value, e)
                await self._audit.log_operation_failed(
                    action=SessionAction.DISCARD_ALL.value,
                    guid=None,
                    error_message=str(e),
                    correlation_id=self._correlation_id,
                )
                return self._result(
                    SessionAction.DISCARD_ALL,
                    OperationOutcome.FAILED,
                    message=f"{SessionAction.DISCARD_ALL.value}: {e}",
                )

            self._records = []
            await self._audit.log_all_discarded(count, self._correlation_id)

            resync = await self._resync(SessionAction.DISCARD_ALL.value)
            if resync.outcome != OperationOutcome.ROLLED_BACK:
                return self._result(
                    SessionAction.DISCARD_ALL, OperationOutcome.PENDING, message=resync.message
                )

            self._notifications.success(
                "All pending transactions have been deleted.",
                action=SessionAction.DISCARD_ALL.value,
            )
            return self._result(SessionAction.DISCARD_ALL, OperationOutcome.COMMITTED)
        finally:
            self._is_bulk_deleting = False
