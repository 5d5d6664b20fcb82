from __future__ import annotations

import re

from .models import OpeningHours, ReviewSnippet

_TYPE_LABELS: dict[str, str] = {
    "restaurant": "Restaurant",
    "meal_takeaway": "Takeaway",
    "meal_delivery": "Delivery",
    "cafe": "Cafe",
    "bar": "Bar",
    "bakery": "Bakery",
    "fast_food_restaurant": "Fast Food",
    "pizza_restaurant": "Pizza",
    "chinese_restaurant": "Chinese",
    "italian_restaurant": "Italian",
    "mexican_restaurant": "Mexican",
    "japanese_restaurant": "Japanese",
    "indian_restaurant": "Indian",
}

_FOOD_KEYWORDS = (
    "delicious", "amazing", "best", "excellent", "perfect", "incredible",
    "pizza", "burger", "pasta", "salad", "steak", "chicken", "seafood",
    "dessert", "coffee", "wine", "beer", "cocktail", "appetizer",
)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def format_primary_type(primary_type: str | None) -> str:
    """Turn a Places type id such as ``thai_restaurant`` into a display label."""
    if not primary_type:
        return "Restaurant"
    if primary_type in _TYPE_LABELS:
        return _TYPE_LABELS[primary_type]
    label = " ".join(word.capitalize() for word in primary_type.split("_"))
    # "Thai Restaurant" -> "Thai"
    if label.endswith(" Restaurant"):
        label = label[: -len(" Restaurant")]
    return label


def format_opening_hours(hours: OpeningHours | None) -> str:
    if hours is None or not hours.weekday_descriptions:
        return ""
    return "\n".join(hours.weekday_descriptions)


def extract_menu_highlights(reviews: list[ReviewSnippet], limit: int = 3) -> list[str]:
    """Pick short review sentences that mention food or strong praise."""
    highlights: list[str] = []
    seen_keywords: set[str] = set()
    for review in reviews[:3]:
        sentences = _SENTENCE_SPLIT.split(review.text)
        for keyword in _FOOD_KEYWORDS:
            if keyword in seen_keywords:
                continue
            for sentence in sentences:
                if keyword in sentence.lower():
                    sentence = sentence.strip()
                    if sentence and len(sentence) < 100 and sentence not in highlights:
                        highlights.append(sentence)
                        seen_keywords.add(keyword)
                    break
    return highlights[:limit]
