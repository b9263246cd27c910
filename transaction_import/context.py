"""
Pipeline Context

Authentication is owned by an external collaborator. The pipeline only
needs to know whether it may run, and it is told so explicitly through
this object rather than by reading global state.
"""

from typing import Optional, Protocol

from transaction_import.errors import PipelineUnavailableError


class AuthStatus(Protocol):
    """What the authentication collaborator exposes."""

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def loading(self) -> bool: ...


class PipelineContext:
    """
    Capability object passed to every pipeline entry point.

    Wraps an AuthStatus when one is given; otherwise holds the two flags
    itself so callers (and tests) can flip them directly.
    """

    def __init__(
        self,
        auth: Optional[AuthStatus] = None,
        is_authenticated: bool = False,
        loading: bool = False,
    ):
        self._auth = auth
        self._is_authenticated = is_authenticated
        self._loading = loading

    @classmethod
    def authenticated(cls) -> "PipelineContext":
        return cls(is_authenticated=True)

    @property
    def is_authenticated(self) -> bool:
        if self._auth is not None:
            return self._auth.is_authenticated
        return self._is_authenticated

    @property
    def loading(self) -> bool:
        if self._auth is not None:
            return self._auth.loading
        return self._loading

    def set_status(self, is_authenticated: bool, loading: bool = False) -> None:
        self._is_authenticated = is_authenticated
        self._loading = loading

    def can_run(self) -> bool:
        """No pipeline action runs while unauthenticated or while auth is loading."""
        return self.is_authenticated and not self.loading

    def ensure_can_run(self, action: str) -> None:
        if not self.can_run():
            reason = "authentication is loading" if self.loading else "not authenticated"
            raise PipelineUnavailableError(f"{action}: pipeline unavailable ({reason})")
