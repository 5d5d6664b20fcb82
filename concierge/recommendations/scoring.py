from __future__ import annotations

from ..places.formatting import (
    extract_menu_highlights,
    format_opening_hours,
    format_primary_type,
)
from ..places.models import BusinessStatus, Coordinates, PlaceDetail, PriceTier
from ..utils.distance import describe_distance, distance_miles
from .models import ModelJudgment, PreferenceQuery, Recommendation

MAX_REASONS = 3

BASE_SCORE = 0.5
HIGH_RATING_BONUS = 0.2
TOP_RATING_BONUS = 0.1
PRICE_MATCH_BONUS = 0.15
REVIEWED_BONUS = 0.1
WELL_REVIEWED_BONUS = 0.05
OPERATIONAL_BONUS = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _price_matches(detail: PlaceDetail, preference: PreferenceQuery) -> bool:
    if preference.price_tier is PriceTier.any or detail.price_tier is None:
        return False
    return detail.price_tier is preference.price_tier


def _category_phrases(detail: PlaceDetail) -> set[str]:
    """Lower-cased category names for a place: the type id minus "_restaurant", and its label."""
    if not detail.primary_type:
        return set()
    core = detail.primary_type.lower().removesuffix("_restaurant").replace("_", " ")
    return {core, format_primary_type(detail.primary_type).lower()}


def _cuisine_matches(cuisine: str, phrases: set[str]) -> bool:
    # Whole-word match on the category's leading words: "coffee" matches
    # "coffee shop", "tea" does not match "steak house".
    wanted = cuisine.replace("_", " ").replace("-", " ").split()
    if not wanted:
        return False
    return any(phrase.split()[: len(wanted)] == wanted for phrase in phrases)


def matched_cuisines(detail: PlaceDetail, preference: PreferenceQuery) -> list[str]:
    """Requested cuisines that name the place's category."""
    phrases = _category_phrases(detail)
    return sorted(c for c in preference.cuisine_types if _cuisine_matches(c, phrases))


def describe_place(detail: PlaceDetail) -> str:
    """One-sentence summary, e.g. "4.2-star Italian restaurant at 123 Main St, 340 reviews."."""
    category = format_primary_type(detail.primary_type)
    if not detail.primary_type or detail.primary_type == "restaurant":
        kind = "restaurant"
    elif detail.primary_type.endswith("_restaurant"):
        kind = f"{category} restaurant"
    else:
        kind = category.lower()

    text = f"{detail.rating:.1f}-star {kind}" if detail.rating else kind
    text = text[0].upper() + text[1:]
    if detail.address:
        text += f" at {detail.address}"
    if detail.review_count:
        text += f", {detail.review_count} reviews"
    return text + "."


class ScoringEngine:
    def __init__(self, model_weight: float = 1.0) -> None:
        if not 0.0 <= model_weight <= 1.0:
            raise ValueError("model_weight must be within [0, 1]")
        self.model_weight = model_weight

    def deterministic_confidence(self, detail: PlaceDetail, preference: PreferenceQuery) -> float:
        score = BASE_SCORE
        rating = detail.rating or 0.0
        if rating >= 4.0:
            score += HIGH_RATING_BONUS
        if rating >= 4.5:
            score += TOP_RATING_BONUS
        if _price_matches(detail, preference):
            score += PRICE_MATCH_BONUS
        if detail.review_count > 50:
            score += REVIEWED_BONUS
        if detail.review_count > 200:
            score += WELL_REVIEWED_BONUS
        if detail.business_status is BusinessStatus.operational:
            score += OPERATIONAL_BONUS
        return _clamp(score)

    def deterministic_reasons(
        self,
        detail: PlaceDetail,
        preference: PreferenceQuery,
        distance: float | None = None,
    ) -> list[str]:
        reasons: list[str] = []
        rating = detail.rating or 0.0
        if rating >= 4.0:
            reasons.append(f"highly rated ({rating:.1f}/5)")
        if _price_matches(detail, preference):
            reasons.append(f"matches your {preference.price_tier.value} budget")
        cuisines = matched_cuisines(detail, preference)
        if cuisines:
            reasons.append(f"serves {' and '.join(c.title() for c in cuisines)}")
        if detail.review_count > 100:
            reasons.append(f"popular choice ({detail.review_count}+ reviews)")

        if not reasons:
            reasons.append(
                describe_distance(distance) if distance is not None else "near your search area"
            )
        return reasons[:MAX_REASONS]

    def score(
        self,
        detail: PlaceDetail,
        preference: PreferenceQuery,
        judgment: ModelJudgment | None = None,
        origin: Coordinates | None = None,
    ) -> Recommendation:
        if detail.business_status is BusinessStatus.closed_permanently:
            raise ValueError(f"place {detail.place_id} is permanently closed")

        distance = None
        if origin is not None and detail.location is not None:
            distance = distance_miles(origin, detail.location)

        confidence = self.deterministic_confidence(detail, preference)
        reasons = self.deterministic_reasons(detail, preference, distance)
        description = describe_place(detail)

        if judgment is not None:
            confidence = _clamp(
                self.model_weight * judgment.confidence
                + (1.0 - self.model_weight) * confidence
            )
            model_reasons = [r.strip() for r in judgment.reasons if r and r.strip()]
            if model_reasons:
                reasons = model_reasons[:MAX_REASONS]
            if judgment.description.strip():
                description = judgment.description.strip()

        hours = detail.opening_hours
        return Recommendation(
            place_id=detail.place_id,
            name=detail.name,
            category=format_primary_type(detail.primary_type),
            price_tier=detail.price_tier,
            rating=detail.rating,
            review_count=detail.review_count,
            address=detail.address,
            phone=detail.phone,
            website=detail.website,
            hours=format_opening_hours(hours),
            open_now=hours.open_now if hours else None,
            confidence=round(confidence, 4),
            reasons=reasons,
            description=description,
            menu_highlights=extract_menu_highlights(detail.reviews),
            distance_miles=distance,
        )
