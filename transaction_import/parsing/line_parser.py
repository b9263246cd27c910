"""
Line Parser

Turns pasted bank-statement text into ParsedTransaction objects.

Required line shape:  YYYY-MM-DD <description> <amount>
    - single spaces between the three parts
    - description may itself contain spaces (greedy; the amount is
      anchored at the end of the line)
    - amount is an optionally negative decimal with exactly two
      fractional digits

IMPORTANT: Malformed lines are data, not exceptions. Every rejected line
is reported with its 1-based line number and a short preview; the rest
of the batch still goes through.

The pre-submit check (validation.validator) and the real parse both call
`match_line`, so "validated" and "parsed" can never disagree.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from transaction_import.categorization import RuleBasedCategorizer
from transaction_import.models.transaction import (
    CandidateLine,
    LineError,
    ParsedTransaction,
    ParseResult,
)


LINE_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2}) (.+) (-?\d+\.\d{2})$")

DEFAULT_PREVIEW_LENGTH = 50


class LineMatch:
    """The three groups of a matching line, already converted."""

    __slots__ = ("transaction_date", "description", "amount")

    def __init__(self, transaction_date: date, description: str, amount: Decimal):
        self.transaction_date = transaction_date
        self.description = description
        self.amount = amount


def split_candidate_lines(text: Optional[str]) -> list[CandidateLine]:
    """Non-blank lines, numbered from 1."""
    if not text:
        return []
    lines = [line for line in text.splitlines() if line.strip()]
    return [
        CandidateLine(raw_text=line, line_number=index)
        for index, line in enumerate(lines, start=1)
    ]


def make_line_error(
    candidate: CandidateLine,
    reason: str = "invalid_format",
    preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> LineError:
    raw = candidate.raw_text
    return LineError(
        line_number=candidate.line_number,
        preview=raw[:preview_length],
        truncated=len(raw) > preview_length,
        reason=reason,
    )


def match_line(raw_text: str) -> Union[LineMatch, str]:
    """
    Match one line against the required shape.

    Returns a LineMatch on success, or the rejection reason
    ("invalid_format" / "invalid_date") on failure. Never raises.
    """
    match = LINE_PATTERN.match(raw_text.strip())
    if match is None:
        return "invalid_format"

    raw_date, raw_description, raw_amount = match.groups()

    try:
        transaction_date = date.fromisoformat(raw_date)
    except ValueError:
        # Right shape, impossible date (2024-02-30)
        return "invalid_date"

    description = raw_description.strip()
    if not description:
        return "invalid_format"

    try:
        amount = Decimal(raw_amount)
    except InvalidOperation:
        return "invalid_format"

    return LineMatch(transaction_date, description, amount)


class LineParser:
    """
    Parses pasted text into unsaved transactions.

    Stateless apart from its configuration, so parsing the same text
    twice gives equal results.
    """

    def __init__(
        self,
        categorizer: Optional[RuleBasedCategorizer] = None,
        account_name_owner: str = "imported_account",
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
    ):
        self._categorizer = categorizer or RuleBasedCategorizer()
        self._account_name_owner = account_name_owner
        self._preview_length = preview_length

    def parse(
        self,
        text: Optional[str],
        account_name_owner: Optional[str] = None,
    ) -> ParseResult:
        """
        Parse every non-blank line of `text`.

        Args:
            text: Raw pasted text
            account_name_owner: Account to assign (defaults to the parser's)

        Returns:
            ParseResult with successes, per-line errors and the line count
        """
        owner = account_name_owner or self._account_name_owner
        candidates = split_candidate_lines(text)

        transactions = []
        errors = []

        for candidate in candidates:
            outcome = match_line(candidate.raw_text)
            if isinstance(outcome, str):
                errors.append(
                    make_line_error(candidate, outcome, self._preview_length)
                )
                continue

            transactions.append(ParsedTransaction(
                transaction_date=outcome.transaction_date,
                description=outcome.description,
                amount=outcome.amount,
                category=self._categorizer.categorize(outcome.description),
                account_name_owner=owner,
            ))

        return ParseResult(
            transactions=transactions,
            errors=errors,
            total_lines=len(candidates),
        )


def parse_transactions(
    text: Optional[str],
    account_name_owner: str = "imported_account",
) -> ParseResult:
    """Parse with the default rule set."""
    return LineParser(account_name_owner=account_name_owner).parse(text)


def validate_format(
    text: Optional[str],
    preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> list[LineError]:
    """
    Cheap pre-submit check: the errors a parse of `text` would report.

    Does not categorize or build transactions.
    """
    errors = []
    for candidate in split_candidate_lines(text):
        outcome = match_line(candidate.raw_text)
        if isinstance(outcome, str):
            errors.append(make_line_error(candidate, outcome, preview_length))
    return errors
