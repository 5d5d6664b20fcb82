from __future__ import annotations

import asyncio
import logging

from ..places.base import GeoPlaceSource
from ..places.errors import PlacesError, PlacesUnavailableError
from ..places.models import Coordinates, PlaceStub
from .config import MILES_TO_METERS
from .errors import UpstreamUnreachableError

logger = logging.getLogger(__name__)


def miles_to_meters(miles: float) -> float:
    return miles * MILES_TO_METERS


def _dedupe(stubs: list[PlaceStub]) -> list[PlaceStub]:
    """Drop repeated place ids, keeping the first occurrence in source order."""
    seen: set[str] = set()
    unique: list[PlaceStub] = []
    for stub in stubs:
        if stub.place_id in seen:
            continue
        seen.add(stub.place_id)
        unique.append(stub)
    return unique


class CandidateRetriever:
    def __init__(self, source: GeoPlaceSource, max_concurrency: int = 6) -> None:
        self.source = source
        self.max_concurrency = max_concurrency

    async def retrieve(self, origin: Coordinates, radius: float, cap: int) -> list[PlaceStub]:
        """Return up to *cap* unique nearby places within *radius* miles of *origin*."""
        try:
            stubs = await self.source.search_nearby(
                origin.latitude, origin.longitude, miles_to_meters(radius),
            )
        except PlacesError as exc:
            logger.error("Nearby search failed: %s", exc)
            raise UpstreamUnreachableError(str(exc)) from exc

        if not stubs:
            logger.info("No nearby candidates within %.1f miles", radius)
            return []

        candidates = _dedupe(stubs)[:cap]
        logger.info("Retrieved %d candidates (%d raw)", len(candidates), len(stubs))
        return candidates

    async def retrieve_named(
        self, origin: Coordinates, names: list[str], radius_meters: float,
    ) -> dict[str, PlaceStub]:
        """Resolve suggested restaurant names to places via text search.

        Maps each name to the first hit, in suggestion order; a place claimed
        by an earlier name is not repeated. Names that fail to resolve are
        skipped; if every lookup failed because the service is unreachable the
        whole call is reported as unreachable.
        """
        if not names:
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _lookup(name: str) -> PlaceStub | PlacesError | None:
            async with semaphore:
                try:
                    hits = await self.source.search_by_text(
                        name, origin.latitude, origin.longitude, radius_meters,
                    )
                except PlacesError as exc:
                    logger.warning("Text search for %r failed: %s", name, exc)
                    return exc
            if not hits:
                logger.info("No place found for suggested restaurant %r", name)
                return None
            return hits[0]

        results = await asyncio.gather(*(_lookup(name) for name in names))

        failures = [r for r in results if isinstance(r, PlacesError)]
        if failures and len(failures) == len(results) and all(
            isinstance(f, PlacesUnavailableError) for f in failures
        ):
            raise UpstreamUnreachableError(str(failures[0])) from failures[0]

        resolved: dict[str, PlaceStub] = {}
        claimed: set[str] = set()
        for name, result in zip(names, results):
            if isinstance(result, PlaceStub) and result.place_id not in claimed:
                claimed.add(result.place_id)
                resolved[name] = result
        return resolved
