"""
Validation Models

Result types for the pre-submit format check. The check reports issues
for human review; it never silently fixes anything.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from transaction_import.models.transaction import utcnow


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    line_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="1-based line the issue belongs to, if any"
    )
    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_format', 'invalid_date', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the pre-submit format check.

    Errors block the submit action; warnings are shown but do not block.
    """

    validated_at: datetime = Field(
        default_factory=utcnow
    )
    total_lines: int = Field(
        default=0,
        ge=0,
        description="Non-blank lines checked"
    )
    is_valid: bool = Field(
        ...,
        description="Every line matched the required format"
    )
    can_submit: bool = Field(
        ...,
        description="Input is non-empty and has no blocking errors"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
