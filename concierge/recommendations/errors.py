from __future__ import annotations


class RecommendationError(Exception):
    """Base class for failures the pipeline reports to its caller."""


class UpstreamUnreachableError(RecommendationError):
    """Candidate retrieval could not reach the place service."""


class SearchCancelledError(RecommendationError):
    """The caller cancelled the search or its deadline passed."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(f"search {reason}")
        self.reason = reason
