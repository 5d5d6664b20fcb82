from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Union

from ..places.base import GeoPlaceSource
from ..places.models import PlaceDetail, PlaceStub

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetailFound:
    stub: PlaceStub
    detail: PlaceDetail


@dataclass(frozen=True)
class DetailNotFound:
    stub: PlaceStub


@dataclass(frozen=True)
class DetailError:
    stub: PlaceStub
    error: Exception


DetailOutcome = Union[DetailFound, DetailNotFound, DetailError]


class DetailEnricher:
    """Fetch full place detail for each candidate, concurrently and independently."""

    def __init__(self, source: GeoPlaceSource, max_concurrency: int = 6) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.source = source
        self.max_concurrency = max_concurrency

    async def _fetch(self, stub: PlaceStub, semaphore: asyncio.Semaphore) -> DetailOutcome:
        async with semaphore:
            try:
                detail = await self.source.get_detail(stub.place_id)
            except Exception as exc:
                return DetailError(stub, exc)
        if detail is None:
            return DetailNotFound(stub)
        return DetailFound(stub, detail)

    async def fetch_all(self, candidates: list[PlaceStub]) -> list[DetailOutcome]:
        """Return one tagged outcome per candidate, in candidate order."""
        if not candidates:
            return []
        semaphore = asyncio.Semaphore(self.max_concurrency)
        return list(await asyncio.gather(*(self._fetch(c, semaphore) for c in candidates)))

    async def enrich(self, candidates: list[PlaceStub]) -> list[PlaceDetail]:
        outcomes = await self.fetch_all(candidates)

        details: list[PlaceDetail] = []
        for outcome in outcomes:
            if isinstance(outcome, DetailFound):
                details.append(outcome.detail)
            elif isinstance(outcome, DetailNotFound):
                logger.info("Dropping %s: place detail not found", outcome.stub.place_id)
            else:
                logger.warning(
                    "Dropping %s: detail lookup failed (%s: %s)",
                    outcome.stub.place_id, type(outcome.error).__name__, outcome.error,
                )

        if len(details) < len(candidates):
            logger.info("Enriched %d of %d candidates", len(details), len(candidates))
        return details
