"""
Tests for the AI categorization agent.

The Gemini model is replaced by a mock; no API calls are made.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from transaction_import.agents import (
    CategorizationError,
    GeminiCategorizationAgent,
    SimilarTransaction,
    build_prompt,
    parse_ai_response,
    validate_category,
)
from transaction_import.config import GeminiSettings

from conftest import run


CATEGORIES = ["fuel", "groceries", "restaurants", "imported"]


def make_agent(reply=None, error=None):
    model = MagicMock()
    if error is not None:
        model.generate_content_async = AsyncMock(side_effect=error)
    else:
        model.generate_content_async = AsyncMock(
            return_value=SimpleNamespace(text=reply)
        )
    settings = GeminiSettings(api_key="test-key", model_name="gemini-test")
    return GeminiCategorizationAgent(settings=settings, model=model), model


class TestResponseParsing:
    """Tests for parse_ai_response and validate_category."""

    @pytest.mark.parametrize("reply,expected", [
        ("fuel", "fuel"),
        ("  Fuel  ", "fuel"),
        ('"restaurants"', "restaurants"),
        ("groceries.", "groceries"),
        ("groceries\nBecause it is a market", "groceries"),
        ("restaurants because coffee", "restaurants"),
        ("", ""),
        (None, ""),
    ])
    def test_parse_ai_response(self, reply, expected):
        """Test replies are reduced to one lowercase word."""
        assert parse_ai_response(reply) == expected

    def test_validate_category_case_insensitive(self):
        """Test membership ignores case and whitespace."""
        assert validate_category("FUEL", CATEGORIES)
        assert validate_category("fuel", ["  Fuel "])
        assert not validate_category("travel", CATEGORIES)


class TestPrompt:
    """Tests for the categorization prompt."""

    def test_prompt_lists_categories_and_amount(self):
        """Test the prompt carries the categories and the absolute amount."""
        prompt = build_prompt("Shell", Decimal("-40.00"), CATEGORIES)

        assert "Available Categories: fuel, groceries, restaurants, imported" in prompt
        assert '- Description: "Shell"' in prompt
        assert "- Amount: $40.00" in prompt
        assert prompt.endswith("CATEGORY:")
        assert "Similar Past Transactions" not in prompt

    def test_prompt_includes_examples(self):
        """Test similar transactions are numbered into the prompt."""
        examples = [
            SimilarTransaction(description="Exxon", amount=Decimal("-30.00"), category="fuel"),
        ]
        prompt = build_prompt("Shell", Decimal("-40.00"), CATEGORIES, examples)

        assert '1. "Exxon" ($30.00) -> fuel' in prompt


class TestGeminiCategorizationAgent:
    """Tests for the agent with a mocked model."""

    def test_valid_category(self):
        """Test a known category comes back with AI provenance."""
        agent, model = make_agent("Fuel.")

        result = run(agent.categorize("Shell", Decimal("-40.00"), CATEGORIES, "chase"))

        assert result.category == "fuel"
        assert result.metadata.source == "ai"
        assert result.metadata.ai_model == "gemini-test"
        assert result.metadata.similar_transactions_used == 0
        model.generate_content_async.assert_awaited_once()

    def test_similar_transactions_counted(self):
        """Test the provenance records how many examples were sent."""
        agent, _ = make_agent("fuel")
        examples = [
            SimilarTransaction(description="Exxon", amount=Decimal("-30.00"), category="fuel"),
            SimilarTransaction(description="Mobil", amount=Decimal("-25.00"), category="fuel"),
        ]

        result = run(agent.categorize(
            "Shell", Decimal("-40.00"), CATEGORIES, "chase", examples
        ))

        assert result.metadata.similar_transactions_used == 2

    def test_unknown_category_raises(self):
        """Test an invented category is rejected, not applied."""
        agent, _ = make_agent("travel")

        with pytest.raises(CategorizationError, match="unknown category"):
            run(agent.categorize("Delta Air", Decimal("-300.00"), CATEGORIES, "chase"))

    def test_empty_reply_raises(self):
        """Test an empty reply is a failure."""
        agent, _ = make_agent("   ")

        with pytest.raises(CategorizationError, match="empty"):
            run(agent.categorize("Shell", Decimal("-40.00"), CATEGORIES, "chase"))

    def test_service_error_raises(self):
        """Test model exceptions surface as CategorizationError."""
        agent, _ = make_agent(error=RuntimeError("quota"))

        with pytest.raises(CategorizationError, match="AI service error"):
            run(agent.categorize("Shell", Decimal("-40.00"), CATEGORIES, "chase"))

    def test_no_categories_raises_without_calling_model(self):
        """Test nothing is sent when there is nothing to choose from."""
        agent, model = make_agent("fuel")

        with pytest.raises(CategorizationError):
            run(agent.categorize("Shell", Decimal("-40.00"), [], "chase"))
        model.generate_content_async.assert_not_awaited()
