"""
Identifier Issuer

Accepted transactions get a fresh unique identifier before anything is
written. If issuance fails, nothing else happens.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID, uuid4

import structlog

from transaction_import.errors import IdentifierIssueError
from transaction_import.services.storage.http_api import FinanceApiClient
from transaction_import.services.storage.interface import StorageError


logger = structlog.get_logger(__name__)


class IdentifierIssuerInterface(ABC):

    @abstractmethod
    async def issue(self) -> str:
        """
        Issue a new unique identifier.

        Raises:
            IdentifierIssueError: If no identifier could be issued
        """
        pass


class UuidIdentifierIssuer(IdentifierIssuerInterface):
    """Local random UUIDs."""

    async def issue(self) -> str:
        return str(uuid4())


class HttpIdentifierIssuer(IdentifierIssuerInterface):
    """Identifiers from POST /api/uuid/generate, which answers {"uuid": ...}."""

    def __init__(self, client: Optional[FinanceApiClient] = None):
        self._client = client or FinanceApiClient()

    async def issue(self) -> str:
        try:
            data = await self._client.request("POST", "/api/uuid/generate")
        except StorageError as e:
            raise IdentifierIssueError(f"UUID generation failed: {e}") from e

        raw = data.get("uuid") if isinstance(data, dict) else None
        if not raw:
            raise IdentifierIssueError("UUID generation returned no uuid")

        try:
            return str(UUID(str(raw)))
        except ValueError as e:
            logger.warning("invalid_uuid_issued", value=str(raw))
            raise IdentifierIssueError(f"UUID generation returned invalid uuid: {raw}") from e
