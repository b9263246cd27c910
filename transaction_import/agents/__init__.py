"""AI agents package."""

from transaction_import.agents.categorization_agent import (
    CategorizationError,
    CategorizationResult,
    CategorizationServiceInterface,
    GeminiCategorizationAgent,
    SimilarTransaction,
    build_prompt,
    parse_ai_response,
    validate_category,
)

__all__ = [
    "CategorizationError",
    "CategorizationResult",
    "CategorizationServiceInterface",
    "GeminiCategorizationAgent",
    "SimilarTransaction",
    "build_prompt",
    "parse_ai_response",
    "validate_category",
]
