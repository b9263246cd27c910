"""
Tests for the line parser and the pre-submit validator.
"""

from datetime import date
from decimal import Decimal

import pytest

from transaction_import.parsing import (
    LineParser,
    match_line,
    parse_transactions,
    validate_format,
)
from transaction_import.validation import ImportValidator


class TestLineParser:
    """Tests for parse_transactions."""

    def test_single_line(self):
        """A matching line yields one transaction with the matched groups."""
        result = parse_transactions("2024-02-25 Coffee Shop -4.50")

        assert result.success_count == 1
        assert result.error_count == 0
        tx = result.transactions[0]
        assert tx.transaction_date == date(2024, 2, 25)
        assert tx.description == "Coffee Shop"
        assert tx.amount == Decimal("-4.50")
        assert tx.category == "imported"

    def test_mixed_batch(self):
        """Valid lines proceed and the invalid line is reported by number."""
        text = (
            "2024-02-25 Shell Gas Station -40.00\n"
            "not a valid line\n"
            "2024-02-26 Salary 2000.00"
        )
        result = parse_transactions(text)

        assert result.success_count == 2
        assert result.error_count == 1
        assert result.total_lines == 3
        assert result.errors[0].line_number == 2
        assert result.errors[0].preview == "not a valid line"
        assert result.errors[0].message == 'Line 2: "not a valid line"'
        assert result.transactions[0].category == "fuel"
        assert result.transactions[1].category == "imported"
        assert result.transactions[1].amount == Decimal("2000.00")

    def test_counts_add_up(self):
        """success_count + error_count == total non-blank lines."""
        text = "bad\n2024-01-01 A 1.00\n\n2024-13-01 B 1.00\nalso bad\n2024-01-02 C -2.00\n"
        result = parse_transactions(text)

        assert result.total_lines == 5
        assert result.success_count + result.error_count == result.total_lines

    def test_blank_lines_do_not_count(self):
        """Line numbers are counted over non-blank lines."""
        result = parse_transactions("\n\n2024-01-01 Thing 1.00\n\n   \nbroken\n")

        assert result.total_lines == 2
        assert result.errors[0].line_number == 2

    def test_windows_line_endings(self):
        """CRLF pastes parse like LF pastes."""
        result = parse_transactions("2024-01-01 A 1.00\r\n2024-01-02 B 2.00\r\n")

        assert result.success_count == 2
        assert result.transactions[1].description == "B"

    def test_description_keeps_inner_spaces_and_numbers(self):
        """The amount is anchored at the end; the description is greedy."""
        result = parse_transactions("2024-03-01 CHECK 1042 PAID 99 -120.00")

        tx = result.transactions[0]
        assert tx.description == "CHECK 1042 PAID 99"
        assert tx.amount == Decimal("-120.00")

    def test_surrounding_whitespace_ignored(self):
        """Leading and trailing whitespace on a line is tolerated."""
        result = parse_transactions("   2024-01-01 Thing 1.00   ")
        assert result.success_count == 1

    @pytest.mark.parametrize("line", [
        "2024-01-01 Thing 4.5",
        "2024-01-01 Thing 4",
        "2024-01-01 Thing 4.500",
        "01/01/2024 Thing 4.50",
        "2024-01-01 4.50",
        "2024-01-01  -4.50",
        "Thing 2024-01-01 4.50",
    ])
    def test_rejects_malformed_lines(self, line):
        """Lines not in YYYY-MM-DD <description> <±D.DD> form are errors."""
        result = parse_transactions(line)

        assert result.success_count == 0
        assert result.error_count == 1
        assert result.errors[0].reason == "invalid_format"

    def test_rejects_impossible_date(self):
        """A matching line with a non-calendar date is an error, not an exception."""
        result = parse_transactions("2024-02-30 Thing 1.00")

        assert result.success_count == 0
        assert result.errors[0].reason == "invalid_date"

    def test_long_line_preview_truncated(self):
        """Previews are at most 50 characters; the message adds an ellipsis."""
        line = "x" * 80
        result = parse_transactions(line)

        error = result.errors[0]
        assert error.preview == "x" * 50
        assert error.truncated is True
        assert error.message.endswith('..."')

    def test_empty_input(self):
        """Empty or missing text is an empty result."""
        for text in ("", None, "\n  \n"):
            result = parse_transactions(text)
            assert result.total_lines == 0
            assert result.transactions == []

    def test_idempotent(self):
        """Parsing the same text twice gives equal results."""
        text = "2024-02-25 Coffee Shop -4.50\nnope\n2024-02-26 Costco Gas -30.00"
        parser = LineParser()

        assert parser.parse(text) == parser.parse(text)

    def test_account_override(self):
        """The account can be set per parse."""
        parser = LineParser(account_name_owner="default_acct")

        assert parser.parse("2024-01-01 A 1.00").transactions[0].account_name_owner == "default_acct"
        assert parser.parse("2024-01-01 A 1.00", "other_acct").transactions[0].account_name_owner == "other_acct"

    def test_imported_defaults(self):
        """Parsed lines carry the fixed import defaults."""
        tx = parse_transactions("2024-01-01 A 1.00").transactions[0]

        assert tx.reoccurring_type.value == "onetime"
        assert tx.transaction_state.value == "outstanding"
        assert tx.transaction_type.value == "undefined"
        assert tx.account_type.value == "debit"
        assert tx.active_status is True

    def test_summary(self):
        """ParseResult.summary mentions failures only when there are some."""
        assert parse_transactions("2024-01-01 A 1.00").summary == (
            "Successfully parsed 1 transactions."
        )
        assert "1 lines failed to parse" in parse_transactions("2024-01-01 A 1.00\nx").summary


class TestSharedMatcher:
    """The validator and the parser must agree line for line."""

    def test_match_line_returns_reason(self):
        """match_line returns the rejection reason for bad lines."""
        assert match_line("junk") == "invalid_format"
        assert match_line("2023-02-29 A 1.00") == "invalid_date"
        assert match_line("2024-02-29 A 1.00").transaction_date == date(2024, 2, 29)

    def test_validate_format_matches_parse_errors(self):
        """validate_format reports exactly the lines parse rejects."""
        text = "2024-01-01 A 1.00\nbad line\n2024-02-30 B 1.00\n2024-01-03 C 3.00"

        assert validate_format(text) == parse_transactions(text).errors


class TestImportValidator:
    """Tests for the pre-submit ImportValidator."""

    def make_validator(self):
        return ImportValidator(future_date_tolerance_days=7, today=date(2024, 3, 1))

    def test_clean_input(self):
        """Clean input can be submitted."""
        validator = self.make_validator()
        result = validator.validate("2024-02-25 Coffee Shop -4.50")

        assert result.is_valid is True
        assert result.can_submit is True
        assert validator.get_user_friendly_summary(result) == (
            "All lines appear to be in the correct format!"
        )

    def test_empty_input_cannot_submit(self):
        """Nothing pasted means nothing to submit."""
        validator = self.make_validator()
        result = validator.validate("   ")

        assert result.is_valid is True
        assert result.can_submit is False
        assert validator.get_user_friendly_summary(result) == (
            "Paste your transaction data to begin."
        )

    def test_format_errors_block_submit(self):
        """A format error blocks submission and names the line."""
        validator = self.make_validator()
        result = validator.validate("2024-02-25 Coffee Shop -4.50\nnot a valid line")

        assert result.can_submit is False
        assert result.error_count == 1
        assert result.issues[0].message == 'Line 2: "not a valid line"'

    def test_summary_lists_first_five_errors(self):
        """Only five errors are listed; the rest are counted."""
        validator = self.make_validator()
        result = validator.validate("\n".join(f"bad {i}" for i in range(7)))
        summary = validator.get_user_friendly_summary(result)

        assert "Format errors found in 7 line(s):" in summary
        assert 'Line 5: "bad 4"' in summary
        assert 'Line 6: "bad 5"' not in summary
        assert "... and 2 more errors" in summary

    def test_future_date_is_warning(self):
        """Far-future dates warn but do not block."""
        validator = self.make_validator()
        result = validator.validate("2024-06-01 Deposit 100.00")

        assert result.can_submit is True
        assert result.has_errors is False
        assert len(result.warnings) == 1
        assert "in the future" in result.warnings[0]

    def test_zero_amount_is_warning(self):
        """Zero amounts warn but do not block."""
        validator = self.make_validator()
        result = validator.validate("2024-02-01 Refund 0.00")

        assert result.can_submit is True
        assert result.issues[0].issue_type == "zero_amount"
        assert "Please verify" in validator.get_user_friendly_summary(result)
