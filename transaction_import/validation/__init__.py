"""Validation package."""

from transaction_import.validation.validator import ImportValidator

__all__ = ["ImportValidator"]
