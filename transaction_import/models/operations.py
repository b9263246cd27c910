"""
Operation and Session-State Models

Every user action on the working set reports one OperationResult.
Row busy-ness is a single enum per record, so two conflicting
operations on the same row cannot both be in flight.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RowState(str, Enum):
    """What, if anything, is in flight for one record."""
    IDLE = "idle"
    ACCEPTING = "accepting"
    DISCARDING = "discarding"
    CATEGORIZING = "categorizing"
    UPDATING = "updating"


class OperationOutcome(str, Enum):
    """
    Outcome of one optimistic operation.

    PENDING: the local change is applied, the remote call has not settled
    COMMITTED: the remote store agreed
    ROLLED_BACK: the remote call failed and the working set was rebuilt
    FAILED: the operation failed without changing the working set
    REFUSED: the operation never started (row busy, record gone, ...)

    A failed mutation whose resync also failed stays PENDING: the local
    change is applied and the remote state is still unknown.
    """
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    REFUSED = "refused"


class SessionAction(str, Enum):
    """User-facing action names, used in notifications and audit events."""
    LOAD = "load"
    ACCEPT = "accept"
    DISCARD = "discard"
    DISCARD_ALL = "discard_all"
    EDIT = "edit"
    AI_CATEGORIZE = "ai_categorize"
    STAGE = "stage"
    RESYNC = "resync"


class OperationResult(BaseModel):
    """What happened to one user action."""

    action: SessionAction
    guid: Optional[str] = Field(
        default=None,
        description="Correlation id of the record acted on (None for bulk actions)"
    )
    outcome: OperationOutcome
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == OperationOutcome.COMMITTED
