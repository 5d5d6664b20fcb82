from __future__ import annotations

import logging

from pydantic import ValidationError

from ..llm.base import CompletionBackend
from ..places.models import Coordinates
from .models import RestaurantSuggestion

logger = logging.getLogger(__name__)

CONCIERGE_PROMPT = """\
You are a restaurant concierge. The user is located at coordinates \
{latitude}, {longitude}.

Based on their request, recommend real restaurants that exist near those \
coordinates. Return ONLY valid JSON in this format:
{{
  "restaurants": [
    {{"name": "Restaurant Name", "address": "Full street address", \
"reasoning": "Why this matches the request"}}
  ]
}}

Rules:
1. Only recommend restaurants that actually exist near the coordinates.
2. Use real names and complete street addresses, never fictional ones.
3. Focus on places that match the user's specific request.
4. Recommend at most {limit} restaurants, preferring well-known, highly rated ones."""


async def suggest_restaurants(
    backend: CompletionBackend,
    request_text: str,
    origin: Coordinates,
    limit: int = 6,
) -> list[RestaurantSuggestion]:
    """Ask the model for named restaurants; returns ``[]`` on any failure."""
    prompt = CONCIERGE_PROMPT.format(
        latitude=origin.latitude, longitude=origin.longitude, limit=limit,
    )
    try:
        payload = await backend.complete_json(prompt, request_text.strip(), max_tokens=1024)
    except Exception:
        logger.warning("Concierge suggestion call failed", exc_info=True)
        return []

    raw_items = payload.get("restaurants")
    if not isinstance(raw_items, list):
        logger.warning("Concierge payload has no restaurant list")
        return []

    suggestions: list[RestaurantSuggestion] = []
    for item in raw_items:
        try:
            suggestions.append(RestaurantSuggestion.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed suggestion: %r", item)
    return suggestions[:limit]
