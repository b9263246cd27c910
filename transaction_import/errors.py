"""
Pipeline Exceptions

Storage exceptions live with the storage interface and CategorizationError
lives with the categorization agent; these are the ones that belong to the
pipeline itself.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base exception for import pipeline errors."""
    pass


class PipelineUnavailableError(PipelineError):
    """The pipeline was used while unauthenticated or while auth was loading."""
    pass


class IdentifierIssueError(PipelineError):
    """The identifier issuer could not provide a fresh unique id."""
    pass


class AcceptanceError(PipelineError):
    """
    An accept attempt failed at a specific stage.

    stage is one of "identifier", "insert", "delete".
    """

    def __init__(
        self,
        stage: str,
        message: str,
        cause: Optional[BaseException] = None,
        attempt: Optional[Any] = None,
    ):
        self.stage = stage
        self.cause = cause
        self.attempt = attempt
        super().__init__(message)
