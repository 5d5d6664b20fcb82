from __future__ import annotations

import os
from dataclasses import dataclass

MILES_TO_METERS = 1609.34


@dataclass(frozen=True)
class PipelineConfig:
    preference_candidate_cap: int = 8
    free_text_candidate_cap: int = 15
    model_candidate_cap: int = 15
    result_cap: int = 6
    max_concurrent_fetches: int = 6
    # Share of a model judgment in the blended confidence (1.0 = model decides).
    model_weight: float = float(os.getenv("MODEL_WEIGHT", "1.0"))
    deadline_seconds: float = float(os.getenv("SEARCH_DEADLINE_SECONDS", "180"))
    concierge_suggestion_limit: int = 6
    concierge_confidence: float = 0.85
    concierge_radius_meters: float = 30_000.0
    # Ask the model for a blurb per result on the structured-preference path.
    describe_results: bool = os.getenv("DESCRIBE_RESULTS", "true").lower() != "false"


DEFAULT_PIPELINE_CONFIG = PipelineConfig()
