"""Rule-based categorization package."""

from transaction_import.categorization.rules import (
    DEFAULT_CATEGORY,
    DEFAULT_RULES,
    CategoryRule,
    KeywordPattern,
    RuleBasedCategorizer,
    categorize_description,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_RULES",
    "CategoryRule",
    "KeywordPattern",
    "RuleBasedCategorizer",
    "categorize_description",
]
