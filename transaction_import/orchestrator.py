"""
Main Orchestrator for Transaction Import

This module ties together all the components and defines the
end-to-end import flow:

    pasted text → validate → parse → stage into the pending store
                → adopt into the session's working set

Review (accept / discard / edit / AI categorize) then happens on the
ImportSession directly.

DESIGN DECISION: Nothing becomes a real transaction here. Parsed lines
only ever become pending records; promotion requires an explicit accept.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from transaction_import.agents import GeminiCategorizationAgent
from transaction_import.audit import AuditLogger
from transaction_import.categorization import RuleBasedCategorizer
from transaction_import.config import get_settings
from transaction_import.context import PipelineContext
from transaction_import.models.operations import (
    OperationOutcome,
    OperationResult,
    SessionAction,
)
from transaction_import.models.transaction import ParseResult
from transaction_import.models.validation import ValidationResult
from transaction_import.parsing import LineParser
from transaction_import.reconciliation import ImportSession
from transaction_import.services.identifiers import (
    HttpIdentifierIssuer,
    UuidIdentifierIssuer,
)
from transaction_import.services.storage import (
    FinanceApiClient,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPendingStore,
    GoogleSheetsTransactionStore,
    HttpPendingStore,
    HttpTransactionStore,
    InMemoryPendingStore,
    InMemoryTransactionStore,
    PendingRecordStoreInterface,
    StorageError,
)
from transaction_import.validation import ImportValidator


logger = structlog.get_logger(__name__)


class ImportFlow:
    """
    Orchestrates getting pasted text into the working set.

    Flow:
    1. Validate → cheap format check, gates the submit action
    2. Parse → ParsedTransactions plus per-line errors
    3. Stage → insert each transaction into the pending store
    4. Adopt → the session picks up the staged records

    Invalid lines are reported, never silently dropped; valid lines
    proceed even when some lines fail.
    """

    def __init__(
        self,
        context: PipelineContext,
        session: ImportSession,
        pending_store: PendingRecordStoreInterface,
        parser: Optional[LineParser] = None,
        validator: Optional[ImportValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        settings = get_settings().importer
        self._context = context
        self._session = session
        self._pending_store = pending_store
        self._parser = parser or LineParser(
            categorizer=RuleBasedCategorizer(default_category=settings.default_category),
            account_name_owner=settings.default_account_name_owner,
            preview_length=settings.preview_length,
        )
        self._validator = validator or ImportValidator(
            preview_length=settings.preview_length
        )
        self._audit = audit_logger or AuditLogger()

    @property
    def session(self) -> ImportSession:
        return self._session

    def validate(self, text: Optional[str]) -> ValidationResult:
        """Pre-submit check; uses the same line matcher as parse()."""
        return self._validator.validate(text)

    def get_validation_summary(self, result: ValidationResult) -> str:
        return self._validator.get_user_friendly_summary(result)

    async def parse(
        self,
        text: Optional[str],
        account_name_owner: Optional[str] = None,
    ) -> ParseResult:
        """Parse pasted text without staging anything."""
        self._context.ensure_can_run(SessionAction.STAGE.value)

        result = self._parser.parse(text, account_name_owner)
        await self._audit.log_text_parsed(
            result.success_count,
            result.error_count,
            self._session.correlation_id,
        )
        return result

    async def stage(self, parse_result: ParseResult) -> OperationResult:
        """
        Insert parsed transactions into the pending store and adopt them.

        A failed insert stops staging and resyncs the session, since some
        of the batch may already be stored.
        """
        self._context.ensure_can_run(SessionAction.STAGE.value)
        notifications = self._session.notifications

        if not parse_result.transactions:
            notifications.warning(
                "No valid transactions to import.",
                action=SessionAction.STAGE.value,
            )
            return OperationResult(
                action=SessionAction.STAGE,
                outcome=OperationOutcome.REFUSED,
                message="Nothing to stage",
            )

        staged = []
        for transaction in parse_result.transactions:
            try:
                staged.append(await self._pending_store.insert(transaction))
            except StorageError as e:
                notifications.failure(SessionAction.STAGE.value, e)
                await self._audit.log_operation_failed(
                    action=SessionAction.STAGE.value,
                    guid=None,
                    error_message=str(e),
                    correlation_id=self._session.correlation_id,
                )
                resync = await self._session.resync(reason="stage failed")
                return OperationResult(
                    action=SessionAction.STAGE,
                    outcome=resync.outcome,
                    message=f"Staged {len(staged)} of {parse_result.success_count}: {e}",
                )

        await self._audit.log_records_staged(len(staged), self._session.correlation_id)
        try:
            await self._session.adopt(staged)
        except StorageError as e:
            # The batch is stored; the next load() picks it up
            notifications.failure(SessionAction.STAGE.value, e)
            await self._audit.log_operation_failed(
                action=SessionAction.STAGE.value,
                guid=None,
                error_message=str(e),
                correlation_id=self._session.correlation_id,
            )
            return OperationResult(
                action=SessionAction.STAGE,
                outcome=OperationOutcome.PENDING,
                message=f"Staged {len(staged)}, not loaded: {e}",
            )

        if parse_result.error_count:
            notifications.warning(parse_result.summary, action=SessionAction.STAGE.value)
        else:
            notifications.success(parse_result.summary, action=SessionAction.STAGE.value)

        return OperationResult(
            action=SessionAction.STAGE,
            outcome=OperationOutcome.COMMITTED,
            message=parse_result.summary,
        )

    async def import_text(
        self,
        text: Optional[str],
        account_name_owner: Optional[str] = None,
    ) -> tuple[ParseResult, OperationResult]:
        """Parse and stage in one step."""
        parse_result = await self.parse(text, account_name_owner)
        return parse_result, await self.stage(parse_result)


def create_app_components(
    context: PipelineContext,
    backend: Optional[str] = None,
    use_ai: bool = True,
) -> tuple[ImportFlow, ImportSession]:
    """
    Factory function to create all application components.

    Args:
        context: Auth capability shared by the flow and the session
        backend: "memory", "http" or "sheets" (defaults to settings)
        use_ai: Whether to set up the Gemini categorizer.
                Skipped with a warning when Gemini is not configured.

    Returns:
        (import_flow, session)
    """
    settings = get_settings()
    backend = backend or settings.importer.storage_backend
    audit_logger = AuditLogger()  # Local-only logging

    if backend == "memory":
        pending_store = InMemoryPendingStore()
        transaction_store = InMemoryTransactionStore()
        issuer = UuidIdentifierIssuer()
    elif backend == "http":
        api_client = FinanceApiClient(settings.api)
        pending_store = HttpPendingStore(api_client)
        transaction_store = HttpTransactionStore(api_client)
        issuer = HttpIdentifierIssuer(api_client)
    elif backend == "sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        pending_store = GoogleSheetsPendingStore(sheets_client)
        transaction_store = GoogleSheetsTransactionStore(sheets_client)
        issuer = UuidIdentifierIssuer()
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    ai_service = None
    if use_ai:
        try:
            ai_service = GeminiCategorizationAgent(settings.gemini)
        except ValidationError as e:
            # Gemini not configured - AI button stays disabled
            logger.warning("ai_categorization_disabled", error=str(e))

    session = ImportSession(
        context=context,
        pending_store=pending_store,
        transaction_store=transaction_store,
        identifier_issuer=issuer,
        ai_service=ai_service,
        audit_logger=audit_logger,
        settings=settings.importer,
    )

    flow = ImportFlow(
        context=context,
        session=session,
        pending_store=pending_store,
        audit_logger=audit_logger,
    )

    return flow, session
