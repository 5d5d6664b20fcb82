from __future__ import annotations

from .models import Recommendation

CONFIDENCE_WEIGHT = 0.7
RATING_WEIGHT = 0.3
DEFAULT_RESULT_CAP = 6
# Blended scores equal to this many decimals count as tied.
SCORE_PRECISION = 9


def blended_score(rec: Recommendation) -> float:
    """Ranking score: 70% confidence, 30% normalised rating."""
    return CONFIDENCE_WEIGHT * rec.confidence + RATING_WEIGHT * ((rec.rating or 0.0) / 5.0)


def _sort_key(rec: Recommendation) -> tuple[float, int, str]:
    return (-round(blended_score(rec), SCORE_PRECISION), -rec.review_count, rec.name)


class RankerAndSelector:
    def __init__(self, cap: int = DEFAULT_RESULT_CAP) -> None:
        self.cap = cap

    def select(self, recommendations: list[Recommendation], cap: int | None = None) -> list[Recommendation]:
        """Order by blended score (ties: more reviews, then name) and keep the top *cap*."""
        limit = self.cap if cap is None else cap
        if limit <= 0:
            return []
        return sorted(recommendations, key=_sort_key)[:limit]
