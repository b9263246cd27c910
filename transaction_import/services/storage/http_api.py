"""
Finance REST API Storage Implementation

Talks to the finance backend over HTTP:

    GET    /api/pending/transaction/all
    POST   /api/pending/transaction/insert
    PUT    /api/pending/transaction/update/{id}
    DELETE /api/pending/transaction/delete/{id}
    DELETE /api/pending/transaction/delete/all
    POST   /api/transaction/insert

Payloads are camelCase JSON. Every failure is surfaced as StorageError
(or a subclass) so the session never sees an httpx exception.

Only the idempotent fetch is retried. Mutations are attempted exactly
once; the caller decides what a failure means.
"""

from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from transaction_import.config import ApiSettings, get_settings
from transaction_import.models.transaction import (
    ParsedTransaction,
    PermanentTransaction,
    RemotePendingTransaction,
)
from transaction_import.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PendingRecordStoreInterface,
    StorageError,
    TransactionStoreInterface,
)


logger = structlog.get_logger(__name__)

PENDING_PREFIX = "/api/pending/transaction"
TRANSACTION_PREFIX = "/api/transaction"


class FinanceApiClient:
    """
    Thin async wrapper around httpx.

    A client is opened per request, so the wrapper holds no connection
    state and can be shared by every store.
    """

    def __init__(
        self,
        settings: Optional[ApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().api
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._settings.auth_token:
            headers["Authorization"] = f"Bearer {self._settings.auth_token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Any] = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body (None when empty).

        Raises:
            NotFoundError: 404
            DuplicateError: 409
            ConnectionError: Transport failure or timeout
            StorageError: Any other non-2xx status, HTTP failure or undecodable body
        """
        try:
            async with httpx.AsyncClient(
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = f"{method} {path} failed: {status} {e.response.reason_phrase}"
            logger.warning("finance_api_error", method=method, path=path, status=status)
            if status == 404:
                raise NotFoundError(message) from e
            if status == 409:
                raise DuplicateError(message) from e
            raise StorageError(message) from e
        except httpx.TransportError as e:
            logger.warning("finance_api_unreachable", method=method, path=path, error=str(e))
            raise ConnectionError(f"{method} {path} failed: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("finance_api_failed", method=method, path=path, error=str(e))
            raise StorageError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StorageError(f"{method} {path} returned invalid JSON: {e}") from e


def _parse_pending(data: Any, context: str) -> RemotePendingTransaction:
    try:
        return RemotePendingTransaction.model_validate(data)
    except ValueError as e:
        raise StorageError(f"{context}: unexpected response: {e}") from e


class HttpPendingStore(PendingRecordStoreInterface):
    """Pending transactions held by the finance backend."""

    def __init__(self, client: Optional[FinanceApiClient] = None):
        self._client = client or FinanceApiClient()

    @retry(
        retry=retry_if_exception_type(ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_all(self) -> list[RemotePendingTransaction]:
        data = await self._client.request("GET", f"{PENDING_PREFIX}/all")
        if data is None:
            return []
        if not isinstance(data, list):
            raise StorageError("Fetch pending transactions: expected a JSON array")
        return [_parse_pending(item, "Fetch pending transactions") for item in data]

    async def insert(
        self,
        transaction: ParsedTransaction,
    ) -> RemotePendingTransaction:
        payload = {
            "accountNameOwner": transaction.account_name_owner,
            "transactionDate": transaction.transaction_date.isoformat(),
            "description": transaction.description,
            "amount": float(transaction.amount),
            "reviewStatus": "pending",
        }
        data = await self._client.request("POST", f"{PENDING_PREFIX}/insert", payload)
        return _parse_pending(data, "Insert pending transaction")

    async def update(
        self,
        pending_transaction_id: int,
        patch: dict[str, Any],
    ) -> RemotePendingTransaction:
        try:
            body = RemotePendingTransaction.model_validate({
                **patch,
                "pending_transaction_id": pending_transaction_id,
            })
        except ValueError as e:
            raise StorageError(f"Invalid update: {e}") from e

        payload = body.model_dump(mode="json", by_alias=True, exclude_none=True)
        payload["amount"] = float(body.amount)

        data = await self._client.request(
            "PUT",
            f"{PENDING_PREFIX}/update/{pending_transaction_id}",
            payload,
        )
        if data is None:
            return body
        return _parse_pending(data, "Update pending transaction")

    async def delete(self, pending_transaction_id: int) -> None:
        await self._client.request(
            "DELETE", f"{PENDING_PREFIX}/delete/{pending_transaction_id}"
        )

    async def delete_all(self) -> None:
        await self._client.request("DELETE", f"{PENDING_PREFIX}/delete/all")


class HttpTransactionStore(TransactionStoreInterface):
    """Permanent transactions held by the finance backend."""

    def __init__(self, client: Optional[FinanceApiClient] = None):
        self._client = client or FinanceApiClient()

    async def insert(
        self,
        transaction: PermanentTransaction,
    ) -> PermanentTransaction:
        payload = transaction.model_dump(mode="json", by_alias=True)
        payload["amount"] = float(transaction.amount)

        data = await self._client.request(
            "POST", f"{TRANSACTION_PREFIX}/insert", payload
        )
        if data is None:
            return transaction
        try:
            return PermanentTransaction.model_validate(data)
        except ValueError as e:
            raise StorageError(f"Insert transaction: unexpected response: {e}") from e
