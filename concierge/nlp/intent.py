from __future__ import annotations

import logging

from pydantic import ValidationError

from ..llm.base import CompletionBackend
from ..places.models import PriceTier
from ..recommendations.models import PreferenceQuery
from .models import ExtractedIntent, ParseFailure, ParseResult, ParseSuccess

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_MILES = 10.0
DEFAULT_PARTY_SIZE = 2

# ---------------------------------------------------------------------------
# LLM Prompt
# ---------------------------------------------------------------------------

INTENT_EXTRACTION_PROMPT = """\
You are a restaurant search query parser. Given a user's description of \
what they want to eat, extract structured dining preferences as JSON.

Return ONLY valid JSON with these fields (use null if not mentioned):
{
  "cuisine": ["Italian", "sushi"],
  "price_range": "$ / $$ / $$$ / $$$$",
  "occasion": "date night / business meeting / casual dining / celebration",
  "ambiance": "romantic / casual / upscale / quiet / lively",
  "dietary_restrictions": ["vegetarian", "gluten-free"],
  "distance": 10,
  "party_size": 2,
  "special_requests": ["outdoor seating", "live music"]
}

distance is in miles. Do not invent preferences the user did not express."""


# ---------------------------------------------------------------------------
# Price Mapping
# ---------------------------------------------------------------------------

_PRICE_SYMBOLS: dict[str, PriceTier] = {
    "$": PriceTier.budget,
    "$$": PriceTier.moderate,
    "$$$": PriceTier.upscale,
    "$$$$": PriceTier.fine_dining,
}

# Checked in order, so longer phrases come before the words they contain.
_PRICE_KEYWORDS: list[tuple[str, PriceTier]] = [
    ("fine dining", PriceTier.fine_dining),
    ("fine-dining", PriceTier.fine_dining),
    ("luxury", PriceTier.fine_dining),
    ("mid-range", PriceTier.moderate),
    ("mid range", PriceTier.moderate),
    ("moderate", PriceTier.moderate),
    ("reasonable", PriceTier.moderate),
    ("inexpensive", PriceTier.budget),
    ("expensive", PriceTier.upscale),
    ("upscale", PriceTier.upscale),
    ("premium", PriceTier.upscale),
    ("splurge", PriceTier.upscale),
    ("cheap", PriceTier.budget),
    ("budget", PriceTier.budget),
    ("affordable", PriceTier.budget),
]


def map_price_to_tier(expression: str | None) -> PriceTier:
    if not expression:
        return PriceTier.any

    lower = expression.lower().strip()
    if lower in _PRICE_SYMBOLS:
        return _PRICE_SYMBOLS[lower]

    for keyword, tier in _PRICE_KEYWORDS:
        if keyword in lower:
            return tier

    return PriceTier.any


# ---------------------------------------------------------------------------
# Intent → PreferenceQuery
# ---------------------------------------------------------------------------


def map_intent_to_preference(intent: ExtractedIntent) -> PreferenceQuery:
    return PreferenceQuery(
        cuisine_types=intent.cuisine,
        price_tier=map_price_to_tier(intent.price_range),
        occasion=intent.occasion or "",
        ambiance=intent.ambiance or "",
        dietary_restrictions=intent.dietary_restrictions,
        radius=intent.distance or DEFAULT_RADIUS_MILES,
        party_size=intent.party_size or DEFAULT_PARTY_SIZE,
        special_requests=intent.special_requests,
    )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TextIntentParser:
    """Turns free text into a ``PreferenceQuery``; degrades to defaults."""

    def __init__(self, backend: CompletionBackend) -> None:
        self.backend = backend

    async def extract(self, free_text: str) -> ParseResult:
        if not free_text.strip():
            return ParseFailure("empty query")

        try:
            payload = await self.backend.complete_json(
                INTENT_EXTRACTION_PROMPT,
                free_text.strip(),
                max_tokens=512,
                temperature=0.1,
            )
        except Exception as exc:
            logger.warning("Intent extraction failed, using defaults", exc_info=True)
            return ParseFailure(f"completion failed: {type(exc).__name__}")

        try:
            return ParseSuccess(ExtractedIntent.model_validate(payload))
        except ValidationError as exc:
            logger.warning("Intent payload did not match the expected shape: %s", exc)
            return ParseFailure("payload failed validation")

    async def parse(self, free_text: str) -> PreferenceQuery:
        result = await self.extract(free_text)
        if isinstance(result, ParseFailure):
            logger.info("Falling back to default preferences (%s)", result.reason)
            return PreferenceQuery(radius=DEFAULT_RADIUS_MILES, party_size=DEFAULT_PARTY_SIZE)
        return map_intent_to_preference(result.intent)
