"""Workflows package."""

from transaction_import.workflows.acceptance import (
    AcceptanceAttempt,
    AcceptanceStage,
    AcceptanceState,
    AcceptanceWorkflow,
)

__all__ = [
    "AcceptanceAttempt",
    "AcceptanceStage",
    "AcceptanceState",
    "AcceptanceWorkflow",
]
