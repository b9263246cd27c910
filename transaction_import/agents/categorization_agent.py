"""
AI Categorization Agent

CRITICAL BOUNDARIES:
   - CAN: Suggest ONE category for ONE transaction, chosen from the
     categories the caller already knows about
   - CANNOT: Invent a new category
   - CANNOT: Touch the record; the caller decides whether to apply the result
   - MUST: Raise CategorizationError instead of guessing

The agent is only ever invoked per record, on explicit user request.
There is no silent fallback here: a failed AI call leaves the record's
rule-based category exactly as it was.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from transaction_import.config import GeminiSettings, get_settings
from transaction_import.models.transaction import AiProvenance


logger = structlog.get_logger(__name__)


class SimilarTransaction(BaseModel):
    """A past, already-categorized transaction offered as context."""

    description: str
    amount: Decimal
    category: str


class CategorizationResult(BaseModel):
    """A successful AI categorization."""

    category: str = Field(..., min_length=1)
    metadata: AiProvenance


class CategorizationError(Exception):
    """The AI categorizer failed or returned an unusable category."""
    pass


class CategorizationServiceInterface(ABC):
    """Request/response contract for per-record AI categorization."""

    @abstractmethod
    async def categorize(
        self,
        description: str,
        amount: Decimal,
        known_categories: Sequence[str],
        account_id: str,
        similar_transactions: Optional[Sequence[SimilarTransaction]] = None,
    ) -> CategorizationResult:
        """
        Suggest a category for one transaction.

        Returns:
            CategorizationResult with AI provenance

        Raises:
            CategorizationError: On any failure or an unknown category
        """
        pass


def build_prompt(
    description: str,
    amount: Decimal,
    categories: Sequence[str],
    examples: Sequence[SimilarTransaction] = (),
) -> str:
    """Prompt asking for exactly one category name."""
    amount_str = f"{abs(Decimal(amount)):.2f}"

    prompt = f"""You are a financial transaction categorization expert. Based on the transaction description and amount, suggest the most appropriate category.

Available Categories: {', '.join(categories)}

Transaction:
- Description: "{description}"
- Amount: ${amount_str}
"""

    if examples:
        prompt += "\nSimilar Past Transactions (for context):\n"
        for i, ex in enumerate(examples, start=1):
            prompt += (
                f'{i}. "{ex.description}" '
                f"(${abs(ex.amount):.2f}) -> {ex.category}\n"
            )

    prompt += """
INSTRUCTIONS:
1. Analyze the transaction description carefully
2. Consider the amount and similar past categorizations
3. Respond with EXACTLY ONE category name from the available list
4. If completely uncertain, respond with "imported"
5. DO NOT include explanations, just the category name

CATEGORY:"""

    return prompt


def parse_ai_response(response: Optional[str]) -> str:
    """
    Reduce a model reply to a bare category name.

    Lowercases, strips surrounding quotes and a trailing period, then
    keeps the first word of the first line.
    """
    category = (response or "").strip().lower()
    if category[:1] in ("'", '"'):
        category = category[1:]
    if category[-1:] in ("'", '"'):
        category = category[:-1]
    category = category.removesuffix(".")
    category = category.split("\n")[0]
    return category.split(" ")[0]


def validate_category(category: str, known_categories: Sequence[str]) -> bool:
    """Case-insensitive membership check against the known categories."""
    normalized = category.lower().strip()
    return normalized in {c.lower().strip() for c in known_categories}


class GeminiCategorizationAgent(CategorizationServiceInterface):
    """
    Categorizes a single transaction with Gemini.

    Rate-limit responses are retried with exponential backoff; every
    other failure surfaces immediately as CategorizationError.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model=None,
    ):
        self._settings = settings or get_settings().gemini
        if model is None:
            self._configure_genai()
        else:
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=(
                "You are a financial categorization expert. "
                "Respond with only the category name."
            ),
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    @retry(
        retry=retry_if_exception_type(google_exceptions.ResourceExhausted),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _generate(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        return response.text

    async def categorize(
        self,
        description: str,
        amount: Decimal,
        known_categories: Sequence[str],
        account_id: str,
        similar_transactions: Optional[Sequence[SimilarTransaction]] = None,
    ) -> CategorizationResult:
        if not known_categories:
            raise CategorizationError("No known categories to choose from")

        examples = list(similar_transactions or [])
        prompt = build_prompt(description, amount, known_categories, examples)

        try:
            reply = await self._generate(prompt)
        except Exception as e:
            logger.warning(
                "ai_categorization_call_failed",
                account_id=account_id,
                error=str(e),
            )
            raise CategorizationError(f"AI service error: {e}") from e

        category = parse_ai_response(reply)
        if not category:
            raise CategorizationError("AI returned an empty category")

        if not validate_category(category, known_categories):
            logger.warning(
                "ai_categorization_invalid_category",
                account_id=account_id,
                category=category,
            )
            raise CategorizationError(f"AI returned unknown category '{category}'")

        logger.info(
            "ai_categorization_succeeded",
            account_id=account_id,
            category=category,
        )

        return CategorizationResult(
            category=category,
            metadata=AiProvenance(
                ai_model=self.model_name,
                similar_transactions_used=len(examples),
            ),
        )
