"""Local reconciliation package."""

from transaction_import.reconciliation.session import ImportSession

__all__ = ["ImportSession"]
