"""
Recommendation pipeline.

Responsibilities:
- Retrieve nearby candidates from the place source.
- Enrich candidates with full place detail, tolerating per-place failures.
- Score candidates deterministically, optionally blended with model judgments.
- Rank, truncate and return structured recommendations.
"""
