"""
Pre-Submit Format Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FORMAT VALIDATION:
- Every non-blank line must match `YYYY-MM-DD <description> <amount>`
- The date must be a real calendar date
- Failures here are errors: they gate the submit action

STAGE 2 - SEMANTIC VALIDATION:
- Dates far in the future
- Zero amounts
- These are warnings only; the user decides

IMPORTANT: Stage 1 uses the very same `match_line` the parser uses.
A line that validates always parses, and a line that fails here is
exactly a line the parser would reject.

Validation NEVER silently fixes issues. It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from transaction_import.config import get_settings
from transaction_import.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from transaction_import.parsing.line_parser import (
    DEFAULT_PREVIEW_LENGTH,
    LineMatch,
    make_line_error,
    match_line,
    split_candidate_lines,
)


MAX_LISTED_ERRORS = 5


class ImportValidator:
    """
    Validates pasted text before it is parsed.

    Cheap enough to run on every (debounced) keystroke.
    """

    def __init__(
        self,
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
        future_date_tolerance_days: Optional[int] = None,
        today: Optional[date] = None,
    ):
        """
        Initialize validator.

        Args:
            preview_length: Characters of an offending line to show
            future_date_tolerance_days: Days ahead before a date is flagged.
                                        Read from settings if None.
            today: Fixed "today" for deterministic checks
        """
        self._preview_length = preview_length
        if future_date_tolerance_days is None:
            future_date_tolerance_days = (
                get_settings().importer.future_date_tolerance_days
            )
        self._future_days = future_date_tolerance_days
        self._today = today

    def _validate_semantic(
        self,
        line_number: int,
        matched: LineMatch,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation of one matching line.

        Returns warnings only.
        """
        issues = []
        today = self._today or date.today()
        max_future_date = today + timedelta(days=self._future_days)

        if matched.transaction_date > max_future_date:
            issues.append(ValidationIssue(
                line_number=line_number,
                field="transaction_date",
                issue_type="future_date",
                message=(
                    f"Line {line_number}: date {matched.transaction_date} "
                    "is in the future"
                ),
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if matched.amount == Decimal("0"):
            issues.append(ValidationIssue(
                line_number=line_number,
                field="amount",
                issue_type="zero_amount",
                message=f"Line {line_number}: amount is zero",
                severity="warning",
                suggested_fix="Please verify the amount",
            ))

        return issues

    def validate(self, text: Optional[str]) -> ValidationResult:
        """
        Run the format and semantic checks over every non-blank line.

        Args:
            text: Raw pasted text

        Returns:
            ValidationResult; `can_submit` gates the parse action
        """
        candidates = split_candidate_lines(text)
        issues = []

        # Stage 1: format
        for candidate in candidates:
            outcome = match_line(candidate.raw_text)
            if isinstance(outcome, str):
                line_error = make_line_error(
                    candidate, outcome, self._preview_length
                )
                issues.append(ValidationIssue(
                    line_number=candidate.line_number,
                    field="line",
                    issue_type=outcome,
                    message=line_error.message,
                    severity="error",
                    suggested_fix=(
                        "Use a real calendar date"
                        if outcome == "invalid_date"
                        else "Use: YYYY-MM-DD Description Amount (e.g. 2024-02-25 Coffee Shop -4.50)"
                    ),
                ))
                continue

            # Stage 2: semantics, only for lines that passed stage 1
            issues.extend(self._validate_semantic(candidate.line_number, outcome))

        warnings = [i.message for i in issues if i.severity == "warning"]
        has_errors = any(i.severity == "error" for i in issues)

        return ValidationResult(
            total_lines=len(candidates),
            is_valid=not has_errors,
            can_submit=bool(candidates) and not has_errors,
            issues=issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        Lists at most five format errors; the rest are counted.
        """
        if result.total_lines == 0:
            return "Paste your transaction data to begin."

        if result.is_valid and not result.warnings:
            return "All lines appear to be in the correct format!"

        lines = []

        if result.has_errors:
            errors = [i for i in result.issues if i.severity == "error"]
            lines.append(f"Format errors found in {len(errors)} line(s):")
            for issue in errors[:MAX_LISTED_ERRORS]:
                lines.append(f"   • {issue.message}")
            if len(errors) > MAX_LISTED_ERRORS:
                lines.append(
                    f"   ... and {len(errors) - MAX_LISTED_ERRORS} more errors"
                )

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
