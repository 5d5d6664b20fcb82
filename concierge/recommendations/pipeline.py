from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, TypeVar

from ..llm.base import CompletionBackend
from ..nlp.concierge import suggest_restaurants
from ..nlp.intent import TextIntentParser
from ..places.base import GeoPlaceSource
from ..places.models import BusinessStatus, Coordinates, PlaceDetail, PlaceStub
from .config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from .descriptions import DescriptionWriter
from .enrichment import DetailEnricher
from .errors import SearchCancelledError
from .models import ModelJudgment, PreferenceQuery, Recommendation
from .ranking import RankerAndSelector
from .reranking import ModelAssistedRanking, RankingStrategy
from .retrieval import CandidateRetriever
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# How long a cancelled search may take to unwind its in-flight calls.
CANCEL_GRACE_SECONDS = 5.0


class PipelineStage(str, Enum):
    idle = "idle"
    parsing = "parsing"
    retrieving = "retrieving"
    enriching = "enriching"
    scoring = "scoring"
    selecting = "selecting"
    done = "done"


class RecommendationPipeline:
    """
    Compose retrieval, enrichment, scoring and selection into search entry points.

    Every call builds its own candidate and detail lists; the injected place
    source and completion backend are the only shared objects. Each entry
    point returns an ordered (possibly empty) list, raises
    ``UpstreamUnreachableError`` when candidate retrieval cannot reach the
    place service, and raises ``SearchCancelledError`` on timeout or when
    *cancel_event* is set.
    """

    def __init__(
        self,
        place_source: GeoPlaceSource,
        completion_backend: CompletionBackend,
        *,
        ranking: RankingStrategy | None = None,
        config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
    ) -> None:
        self.place_source = place_source
        self.completion_backend = completion_backend
        self.config = config

        self.parser = TextIntentParser(completion_backend)
        self.retriever = CandidateRetriever(place_source, config.max_concurrent_fetches)
        self.enricher = DetailEnricher(place_source, config.max_concurrent_fetches)
        self.scorer = ScoringEngine(model_weight=config.model_weight)
        self.ranker = RankerAndSelector(cap=config.result_cap)
        self.ranking = ranking or ModelAssistedRanking(
            completion_backend, candidate_cap=config.model_candidate_cap,
        )
        self.describer: DescriptionWriter | None = None
        if config.describe_results:
            self.describer = DescriptionWriter(completion_backend, config.max_concurrent_fetches)

    async def aclose(self) -> None:
        await self.place_source.aclose()
        await self.completion_backend.aclose()

    # ── Public entry points ────────────────────────────────────────────

    async def search_by_preferences(
        self,
        preference: PreferenceQuery,
        origin: Coordinates,
        *,
        limit: int | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Recommendation]:
        return await self._supervise(
            self._preference_flow(preference, origin, limit), timeout, cancel_event,
        )

    async def search_by_free_text(
        self,
        text: str,
        origin: Coordinates,
        *,
        limit: int | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Recommendation]:
        return await self._supervise(
            self._free_text_flow(text, origin, limit), timeout, cancel_event,
        )

    async def search_by_concierge(
        self,
        text: str,
        origin: Coordinates,
        *,
        limit: int | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Recommendation]:
        """Let the model name restaurants, then resolve and enrich them."""
        return await self._supervise(
            self._concierge_flow(text, origin, limit), timeout, cancel_event,
        )

    # ── Flows ──────────────────────────────────────────────────────────

    async def _preference_flow(
        self, preference: PreferenceQuery, origin: Coordinates, limit: int | None,
    ) -> list[Recommendation]:
        self._enter(PipelineStage.retrieving, "preferences")
        candidates = await self.retriever.retrieve(
            origin, preference.radius, self.config.preference_candidate_cap,
        )
        details = await self._enrich(candidates, "preferences")

        self._enter(PipelineStage.scoring, "preferences")
        recs = [self.scorer.score(d, preference, origin=origin) for d in details]

        self._enter(PipelineStage.selecting, "preferences")
        selected = self.ranker.select(recs, limit)
        if self.describer is not None and selected:
            selected = await self.describer.rewrite(selected, details, preference)
        return self._finish(selected, len(recs), "preferences")

    async def _free_text_flow(
        self, text: str, origin: Coordinates, limit: int | None,
    ) -> list[Recommendation]:
        self._enter(PipelineStage.parsing, "free_text")
        preference = await self.parser.parse(text)
        logger.info("Parsed free-text query into %s", preference.model_dump(mode="json"))

        self._enter(PipelineStage.retrieving, "free_text")
        candidates = await self.retriever.retrieve(
            origin, preference.radius, self.config.free_text_candidate_cap,
        )
        details = await self._enrich(candidates, "free_text")

        self._enter(PipelineStage.scoring, "free_text")
        judgments: dict[str, ModelJudgment] = {}
        if details:
            judgments = await self.ranking.judge(
                text, preference, details[: self.config.model_candidate_cap],
            )
        recs = [
            self.scorer.score(d, preference, judgments.get(d.place_id), origin)
            for d in details
        ]
        return self._select(recs, limit, "free_text")

    async def _concierge_flow(
        self, text: str, origin: Coordinates, limit: int | None,
    ) -> list[Recommendation]:
        self._enter(PipelineStage.parsing, "concierge")
        suggestions = await suggest_restaurants(
            self.completion_backend, text, origin, self.config.concierge_suggestion_limit,
        )
        if not suggestions:
            self._enter(PipelineStage.done, "concierge")
            return []

        self._enter(PipelineStage.retrieving, "concierge")
        resolved = await self.retriever.retrieve_named(
            origin,
            [s.search_text for s in suggestions],
            self.config.concierge_radius_meters,
        )
        reasoning_by_place: dict[str, str] = {}
        stubs: list[PlaceStub] = []
        for suggestion in suggestions:
            stub = resolved.get(suggestion.search_text)
            if stub is None or stub.place_id in reasoning_by_place:
                continue
            reasoning_by_place[stub.place_id] = suggestion.reasoning or ""
            stubs.append(stub)

        details = await self._enrich(stubs, "concierge")

        self._enter(PipelineStage.scoring, "concierge")
        preference = PreferenceQuery()
        recs = []
        for detail in details:
            reasoning = reasoning_by_place.get(detail.place_id, "")
            judgment = ModelJudgment(
                confidence=self.config.concierge_confidence,
                reasons=[reasoning] if reasoning else [],
            )
            recs.append(self.scorer.score(detail, preference, judgment, origin))
        return self._select(recs, limit, "concierge")

    # ── Shared stages ──────────────────────────────────────────────────

    async def _enrich(self, candidates: list[PlaceStub], flow: str) -> list[PlaceDetail]:
        if not candidates:
            return []
        self._enter(PipelineStage.enriching, flow)
        details = await self.enricher.enrich(candidates)

        usable = [
            d for d in details if d.business_status is not BusinessStatus.closed_permanently
        ]
        if len(usable) < len(details):
            logger.info("Excluded %d permanently closed places", len(details) - len(usable))
        return usable

    def _select(
        self, recs: list[Recommendation], limit: int | None, flow: str,
    ) -> list[Recommendation]:
        self._enter(PipelineStage.selecting, flow)
        return self._finish(self.ranker.select(recs, limit), len(recs), flow)

    def _finish(
        self, selected: list[Recommendation], scored: int, flow: str,
    ) -> list[Recommendation]:
        self._enter(PipelineStage.done, flow)
        logger.info("[%s] returning %d of %d scored places", flow, len(selected), scored)
        return selected

    @staticmethod
    def _enter(stage: PipelineStage, flow: str) -> None:
        logger.debug("[%s] stage=%s", flow, stage.value)

    async def _supervise(
        self,
        flow: Awaitable[T],
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> T:
        """Run *flow* under the deadline and cancel signal."""
        deadline = self.config.deadline_seconds if timeout is None else timeout
        started = time.perf_counter()

        task = asyncio.ensure_future(flow)
        waiters: set[asyncio.Future] = {task}
        cancel_waiter: asyncio.Future | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=deadline, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        reason = "cancelled" if cancel_waiter is not None and cancel_waiter in done else "timeout"
        task.cancel()
        await asyncio.wait({task}, timeout=CANCEL_GRACE_SECONDS)
        if task.done() and not task.cancelled() and task.exception() is not None:
            logger.debug("Search finished with %r while being cancelled", task.exception())

        elapsed = time.perf_counter() - started
        logger.warning("Search %s after %.2fs; abandoning in-flight work", reason, elapsed)
        raise SearchCancelledError(reason)
