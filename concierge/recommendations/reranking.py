from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from ..llm.base import CompletionBackend
from ..places.formatting import format_primary_type
from ..places.models import PlaceDetail
from .models import ModelJudgment, PreferenceQuery

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a restaurant recommendation engine. "
    "Given a user's request and a list of candidate restaurants near them, "
    "select the 3-6 best matches. Consider how well each place fits the "
    "specific request, review content mentioning relevant keywords, price "
    "appropriateness, rating and popularity, and suitability for the occasion.\n\n"
    "Return ONLY valid JSON in this exact format:\n"
    '{"restaurants": [{"id": "<restaurant_id>", "confidence": <0-1>, '
    '"reasons": ["<short reason>", "<short reason>"], '
    '"description": "<one engaging sentence>"}]}\n'
    "Include only restaurants from the provided list. "
    "Be selective: only include places that truly match the request."
)

_MAX_REVIEW_CHARS = 240


def _build_user_message(
    query_text: str,
    preference: PreferenceQuery,
    details: list[PlaceDetail],
) -> str:
    lines = ["## User Request", query_text.strip() or "(no free text)", "", "## Extracted Preferences"]
    if preference.cuisine_types:
        lines.append(f"- Cuisines: {', '.join(sorted(preference.cuisine_types))}")
    lines.append(f"- Price tier: {preference.price_tier.value}")
    if preference.occasion:
        lines.append(f"- Occasion: {preference.occasion}")
    if preference.ambiance:
        lines.append(f"- Ambiance: {preference.ambiance}")
    if preference.dietary_restrictions:
        lines.append(f"- Dietary: {', '.join(sorted(preference.dietary_restrictions))}")
    if preference.special_requests:
        lines.append(f"- Special requests: {', '.join(preference.special_requests)}")
    lines.append(f"- Party size: {preference.party_size}")

    lines.append("\n## Candidate Restaurants")
    lines.append("| ID | Name | Category | Price | Rating | Reviews |")
    lines.append("|---|---|---|---|---|---|")
    for d in details:
        price = d.price_tier.symbol if d.price_tier else "?"
        rating = d.rating if d.rating is not None else "N/A"
        lines.append(
            f"| {d.place_id} | {d.name} | {format_primary_type(d.primary_type)} "
            f"| {price} | {rating} | {d.review_count} |"
        )

    excerpts = [d for d in details if d.reviews]
    if excerpts:
        lines.append("\n## Review Excerpts")
        for d in excerpts:
            snippets = " / ".join(r.text[:_MAX_REVIEW_CHARS] for r in d.reviews[:3] if r.text)
            if snippets:
                lines.append(f"- {d.place_id}: {snippets}")

    return "\n".join(lines)


def _parse_judgment(item: Any) -> ModelJudgment | None:
    if not isinstance(item, dict):
        return None
    try:
        confidence = float(item.get("confidence", 0.5))
    except (TypeError, ValueError):
        return None

    reasons = item.get("reasons") or []
    if isinstance(reasons, str):
        reasons = [reasons]
    if not isinstance(reasons, list):
        reasons = []

    description = item.get("description") or ""
    return ModelJudgment(
        confidence=max(0.0, min(1.0, confidence)),
        reasons=[str(r).strip() for r in reasons if str(r).strip()],
        description=str(description).strip(),
    )


def parse_judgments(payload: dict[str, Any], known_ids: set[str]) -> dict[str, ModelJudgment]:
    items = payload.get("restaurants", payload.get("recommendations", []))
    if not isinstance(items, list):
        return {}

    results: dict[str, ModelJudgment] = {}
    for item in items:
        place_id = str(item.get("id", "")) if isinstance(item, dict) else ""
        if place_id not in known_ids or place_id in results:
            continue
        judgment = _parse_judgment(item)
        if judgment is not None:
            results[place_id] = judgment
    return results


class RankingStrategy(ABC):
    """Produces optional per-place model judgments for the scoring stage."""

    @abstractmethod
    async def judge(
        self,
        query_text: str,
        preference: PreferenceQuery,
        details: list[PlaceDetail],
    ) -> dict[str, ModelJudgment]:
        raise NotImplementedError


class DeterministicRanking(RankingStrategy):
    async def judge(
        self,
        query_text: str,
        preference: PreferenceQuery,
        details: list[PlaceDetail],
    ) -> dict[str, ModelJudgment]:
        return {}


class ModelAssistedRanking(RankingStrategy):
    """
    Ask the completion backend to pick and explain the best candidates.

    Returns an empty dict on any failure (unavailable backend, bad JSON,
    unexpected shape) so scoring falls back to the deterministic formula.
    """

    def __init__(self, backend: CompletionBackend, candidate_cap: int = 15) -> None:
        self.backend = backend
        self.candidate_cap = candidate_cap

    async def judge(
        self,
        query_text: str,
        preference: PreferenceQuery,
        details: list[PlaceDetail],
    ) -> dict[str, ModelJudgment]:
        scoped = details[: self.candidate_cap]
        if not scoped:
            return {}

        try:
            payload = await self.backend.complete_json(
                SYSTEM_PROMPT,
                _build_user_message(query_text, preference, scoped),
                max_tokens=1024,
                temperature=0.3,
            )
        except Exception:
            logger.warning("Model ranking failed, falling back to heuristic scoring", exc_info=True)
            return {}

        judgments = parse_judgments(payload, {d.place_id for d in scoped})
        logger.info("Model selected %d of %d candidates", len(judgments), len(scoped))
        return judgments
