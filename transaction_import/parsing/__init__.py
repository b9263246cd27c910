"""Line parsing package."""

from transaction_import.parsing.line_parser import (
    DEFAULT_PREVIEW_LENGTH,
    LINE_PATTERN,
    LineMatch,
    LineParser,
    make_line_error,
    match_line,
    parse_transactions,
    split_candidate_lines,
    validate_format,
)

__all__ = [
    "DEFAULT_PREVIEW_LENGTH",
    "LINE_PATTERN",
    "LineMatch",
    "LineParser",
    "make_line_error",
    "match_line",
    "parse_transactions",
    "split_candidate_lines",
    "validate_format",
]
