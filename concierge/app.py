from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Awaitable

from fastapi import Depends, FastAPI, HTTPException

from .llm.config import DEFAULT_LLM_CONFIG
from .llm.groq_client import GroqCompletionClient
from .places.config import DEFAULT_PLACES_CONFIG
from .places.google_places import GooglePlacesClient
from .recommendations.errors import SearchCancelledError, UpstreamUnreachableError
from .recommendations.models import (
    FreeTextSearchRequest,
    PreferenceSearchRequest,
    Recommendation,
    RecommendationResponse,
)
from .recommendations.pipeline import RecommendationPipeline

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "search temporarily unavailable, try again"
NO_MATCHES_MESSAGE = "no matches found, try different preferences"


@lru_cache(maxsize=1)
def get_pipeline() -> RecommendationPipeline:
    return RecommendationPipeline(
        GooglePlacesClient(DEFAULT_PLACES_CONFIG),
        GroqCompletionClient(DEFAULT_LLM_CONFIG),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_pipeline.cache_info().currsize:
        await get_pipeline().aclose()
        get_pipeline.cache_clear()


app = FastAPI(title="Restaurant Concierge API", version="1.0.0", lifespan=lifespan)


async def _respond(search: Awaitable[list[Recommendation]]) -> RecommendationResponse:
    try:
        recs = await search
    except UpstreamUnreachableError as exc:
        logger.error("Place service unreachable: %s", exc)
        raise HTTPException(status_code=503, detail=UNAVAILABLE_MESSAGE) from exc
    except SearchCancelledError as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc

    return RecommendationResponse(
        recommendations=recs,
        total=len(recs),
        message=None if recs else NO_MATCHES_MESSAGE,
    )


# ── Endpoints ────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(
    body: PreferenceSearchRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
) -> RecommendationResponse:
    return await _respond(
        pipeline.search_by_preferences(body.to_preference(), body.origin(), limit=body.limit)
    )


@app.post("/recommendations/search", response_model=RecommendationResponse)
async def search(
    body: FreeTextSearchRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
) -> RecommendationResponse:
    return await _respond(
        pipeline.search_by_free_text(body.query, body.origin(), limit=body.limit)
    )


@app.post("/recommendations/concierge", response_model=RecommendationResponse)
async def concierge(
    body: FreeTextSearchRequest,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
) -> RecommendationResponse:
    return await _respond(
        pipeline.search_by_concierge(body.query, body.origin(), limit=body.limit)
    )
