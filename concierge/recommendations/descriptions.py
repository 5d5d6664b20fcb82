from __future__ import annotations

import asyncio
import logging

from ..llm.base import CompletionBackend
from ..places.formatting import format_primary_type
from ..places.models import PlaceDetail
from .models import PreferenceQuery, Recommendation

logger = logging.getLogger(__name__)

DESCRIPTION_PROMPT = (
    "You write short restaurant blurbs for a dining recommendation app. "
    "Given one restaurant and the user's preferences, write 1-2 concise, "
    "appealing sentences on why this place fits what the user asked for. "
    "Do not invent facts that are not in the details provided.\n\n"
    'Return ONLY valid JSON in this exact format: {"description": "<text>"}'
)

_MAX_DESCRIPTION_CHARS = 400


def _build_user_message(detail: PlaceDetail, preference: PreferenceQuery) -> str:
    price = detail.price_tier.symbol if detail.price_tier else "unknown"
    rating = f"{detail.rating}/5" if detail.rating is not None else "unrated"
    lines = [
        f"Name: {detail.name}",
        f"Type: {format_primary_type(detail.primary_type)}",
        f"Rating: {rating} ({detail.review_count} reviews)",
        f"Address: {detail.address or 'unknown'}",
        f"Price level: {price}",
        "",
        "User preferences:",
        f"- Cuisines: {', '.join(sorted(preference.cuisine_types)) or 'any'}",
        f"- Budget: {preference.price_tier.value}",
    ]
    if preference.ambiance:
        lines.append(f"- Atmosphere: {preference.ambiance}")
    if preference.occasion:
        lines.append(f"- Occasion: {preference.occasion}")
    if preference.special_requests:
        lines.append(f"- Special requests: {', '.join(preference.special_requests)}")
    return "\n".join(lines)


class DescriptionWriter:
    """
    Ask the completion backend for a short blurb per recommendation.

    Only the description changes; confidence, reasons and order are left as
    scored. Any failure keeps the synthesized description.
    """

    def __init__(self, backend: CompletionBackend, max_concurrency: int = 6) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.backend = backend
        self.max_concurrency = max_concurrency

    async def describe(self, detail: PlaceDetail, preference: PreferenceQuery) -> str | None:
        try:
            payload = await self.backend.complete_json(
                DESCRIPTION_PROMPT,
                _build_user_message(detail, preference),
                max_tokens=150,
                temperature=0.7,
            )
        except Exception:
            logger.warning(
                "Description for %s failed, keeping synthesized text", detail.place_id,
                exc_info=True,
            )
            return None

        text = payload.get("description")
        if not isinstance(text, str) or not text.strip():
            logger.info("Model gave no description for %s", detail.place_id)
            return None
        return text.strip()[:_MAX_DESCRIPTION_CHARS]

    async def rewrite(
        self,
        recommendations: list[Recommendation],
        details: list[PlaceDetail],
        preference: PreferenceQuery,
    ) -> list[Recommendation]:
        """Return *recommendations* in the same order with model descriptions where available."""
        if not recommendations:
            return []
        by_id = {d.place_id: d for d in details}
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(rec: Recommendation) -> Recommendation:
            detail = by_id.get(rec.place_id)
            if detail is None:
                return rec
            async with semaphore:
                text = await self.describe(detail, preference)
            return rec.model_copy(update={"description": text}) if text else rec

        return list(await asyncio.gather(*(_one(r) for r in recommendations)))
