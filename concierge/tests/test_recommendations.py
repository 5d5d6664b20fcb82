from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from concierge.places.errors import PlacesRequestError
from concierge.places.models import BusinessStatus, Coordinates, OpeningHours, PriceTier, ReviewSnippet
from concierge.recommendations.descriptions import DescriptionWriter
from concierge.recommendations.enrichment import (
    DetailEnricher,
    DetailError,
    DetailFound,
    DetailNotFound,
)
from concierge.recommendations.errors import UpstreamUnreachableError
from concierge.recommendations.models import ModelJudgment, PreferenceQuery, Recommendation
from concierge.recommendations.ranking import RankerAndSelector, blended_score
from concierge.recommendations.reranking import (
    DeterministicRanking,
    ModelAssistedRanking,
    parse_judgments,
)
from concierge.recommendations.retrieval import CandidateRetriever
from concierge.recommendations.scoring import ScoringEngine, describe_place, matched_cuisines
from concierge.tests.stubs import (
    ORIGIN,
    StubCompletionBackend,
    StubPlaceSource,
    make_detail,
    stub_of,
)
from concierge.utils.distance import describe_distance, distance_miles

ITALIAN_MODERATE = PreferenceQuery(cuisine_types=["Italian"], price_tier=PriceTier.moderate)


def _rec(place_id: str, confidence: float, rating: float | None, review_count: int = 0, name: str | None = None):
    return Recommendation(
        place_id=place_id,
        name=name or place_id,
        category="Restaurant",
        rating=rating,
        review_count=review_count,
        confidence=confidence,
        reasons=["near your search area"],
    )


# ── Retrieval ────────────────────────────────────────────────────────────


class TestCandidateRetriever:
    def test_radius_converted_to_meters(self):
        source = StubPlaceSource([make_detail("a")])
        asyncio.run(CandidateRetriever(source).retrieve(ORIGIN, 5, cap=8))
        assert source.nearby_calls == [(40.7128, -74.0060, pytest.approx(8046.7))]

    def test_dedupes_and_caps(self):
        details = [make_detail(str(i)) for i in range(12)]
        stubs = [stub_of(d) for d in details]
        source = StubPlaceSource(details, nearby=stubs[:3] + stubs)
        candidates = asyncio.run(CandidateRetriever(source).retrieve(ORIGIN, 10, cap=8))
        ids = [c.place_id for c in candidates]
        assert len(ids) == 8
        assert len(set(ids)) == 8
        assert ids[:3] == ["0", "1", "2"]

    def test_empty_results(self):
        source = StubPlaceSource([])
        assert asyncio.run(CandidateRetriever(source).retrieve(ORIGIN, 10, cap=8)) == []

    def test_unreachable(self):
        source = StubPlaceSource([], unreachable=True)
        with pytest.raises(UpstreamUnreachableError):
            asyncio.run(CandidateRetriever(source).retrieve(ORIGIN, 10, cap=8))

    def test_retrieve_named_first_hit_per_name(self):
        a, b = make_detail("a"), make_detail("b")
        source = StubPlaceSource(
            [a, b],
            text_results={"Alpha": [stub_of(a), stub_of(b)], "Beta": [stub_of(b)], "Ghost": []},
        )
        resolved = asyncio.run(
            CandidateRetriever(source).retrieve_named(ORIGIN, ["Alpha", "Ghost", "Beta"], 30_000)
        )
        assert {name: s.place_id for name, s in resolved.items()} == {"Alpha": "a", "Beta": "b"}

    def test_retrieve_named_claims_each_place_once(self):
        a = make_detail("a")
        source = StubPlaceSource([a], text_results={"Alpha": [stub_of(a)], "Alpha NYC": [stub_of(a)]})
        resolved = asyncio.run(
            CandidateRetriever(source).retrieve_named(ORIGIN, ["Alpha", "Alpha NYC"], 30_000)
        )
        assert list(resolved) == ["Alpha"]

    def test_retrieve_named_unreachable(self):
        source = StubPlaceSource([], unreachable=True)
        with pytest.raises(UpstreamUnreachableError):
            asyncio.run(CandidateRetriever(source).retrieve_named(ORIGIN, ["Alpha"], 30_000))


# ── Enrichment ───────────────────────────────────────────────────────────


class TestDetailEnricher:
    def test_empty_input(self):
        source = StubPlaceSource([])
        assert asyncio.run(DetailEnricher(source).enrich([])) == []
        assert source.detail_calls == []

    def test_one_failure_one_success(self):
        ok, bad = make_detail("ok"), make_detail("bad")
        source = StubPlaceSource([ok, bad], detail_errors={"bad": PlacesRequestError("400")})
        details = asyncio.run(DetailEnricher(source).enrich([stub_of(bad), stub_of(ok)]))
        assert [d.place_id for d in details] == ["ok"]

    def test_tagged_outcomes_in_candidate_order(self):
        found, failing = make_detail("found"), make_detail("failing")
        missing = stub_of(make_detail("missing"))
        source = StubPlaceSource(
            [found, failing], detail_errors={"failing": RuntimeError("boom")},
        )
        outcomes = asyncio.run(
            DetailEnricher(source).fetch_all([stub_of(failing), missing, stub_of(found)])
        )
        assert [type(o) for o in outcomes] == [DetailError, DetailNotFound, DetailFound]
        assert isinstance(outcomes[0].error, RuntimeError)

    def test_concurrency_is_bounded(self):
        details = [make_detail(str(i)) for i in range(10)]
        source = StubPlaceSource(details, detail_delay=0.01)
        result = asyncio.run(DetailEnricher(source, max_concurrency=3).enrich([stub_of(d) for d in details]))
        assert len(result) == 10
        assert 1 < source.max_in_flight <= 3

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            DetailEnricher(StubPlaceSource([]), max_concurrency=0)


# ── Scoring ──────────────────────────────────────────────────────────────


class TestScoringEngine:
    def test_base_score_only(self):
        detail = make_detail("x", rating=None, review_count=0, price_tier=None, business_status=None)
        assert ScoringEngine().deterministic_confidence(detail, PreferenceQuery()) == 0.5

    def test_bonuses_accumulate(self):
        detail = make_detail("x", rating=4.2, review_count=60, price_tier=PriceTier.budget)
        # 0.5 + 0.2 (rating) + 0.1 (reviews) + 0.1 (operational)
        assert ScoringEngine().deterministic_confidence(detail, ITALIAN_MODERATE) == pytest.approx(0.9)

    def test_confidence_clamped(self):
        detail = make_detail("x", rating=4.9, review_count=500)
        assert ScoringEngine().deterministic_confidence(detail, ITALIAN_MODERATE) == 1.0

    def test_any_price_never_matches(self):
        detail = make_detail("x", rating=None, review_count=0, business_status=None)
        pref = PreferenceQuery(price_tier=PriceTier.any)
        assert ScoringEngine().deterministic_confidence(detail, pref) == 0.5

    def test_reasons(self):
        detail = make_detail("x", rating=4.6, review_count=340)
        reasons = ScoringEngine().deterministic_reasons(detail, ITALIAN_MODERATE)
        assert reasons == ["highly rated (4.6/5)", "matches your moderate budget", "serves Italian"]

    def test_confidence_never_drops_as_rating_rises(self):
        engine = ScoringEngine()
        confidences = [
            engine.score(make_detail("x", rating=r, review_count=10, price_tier=None), PreferenceQuery()).confidence
            for r in (3.9, 4.0, 4.4, 4.5, 5.0)
        ]
        assert confidences == sorted(confidences)
        assert confidences[-1] > confidences[0]

    @pytest.mark.parametrize(
        "primary_type, cuisine",
        [
            ("steak_house", "tea"),
            ("barbecue_restaurant", "bar"),
            ("latin_american_restaurant", "american"),
            ("thai_restaurant", "tha"),
        ],
    )
    def test_cuisine_must_name_the_category(self, primary_type, cuisine):
        detail = make_detail("x", primary_type=primary_type)
        assert matched_cuisines(detail, PreferenceQuery(cuisine_types=[cuisine])) == []

    @pytest.mark.parametrize(
        "primary_type, cuisine",
        [
            ("italian_restaurant", "Italian"),
            ("latin_american_restaurant", "latin american"),
            ("fast_food_restaurant", "fast-food"),
            ("coffee_shop", "coffee"),
            ("bar", "bar"),
        ],
    )
    def test_cuisine_matches_category(self, primary_type, cuisine):
        detail = make_detail("x", primary_type=primary_type)
        assert matched_cuisines(detail, PreferenceQuery(cuisine_types=[cuisine])) == [cuisine.lower()]

    def test_no_serves_reason_for_partial_word(self):
        detail = make_detail("x", primary_type="steak_house", rating=3.0, review_count=10, price_tier=None)
        reasons = ScoringEngine().deterministic_reasons(detail, PreferenceQuery(cuisine_types=["tea"]))
        assert not any(r.startswith("serves") for r in reasons)

    def test_fallback_reason_uses_distance(self):
        detail = make_detail("x", rating=3.0, review_count=10, price_tier=None)
        reasons = ScoringEngine().deterministic_reasons(detail, PreferenceQuery(), distance=2.5)
        assert reasons == ["2.5 miles away"]

    def test_score_builds_recommendation(self):
        detail = make_detail(
            "x",
            rating=4.6,
            location=Coordinates(latitude=40.7128, longitude=-74.0060),
            reviews=[ReviewSnippet(text="Best pasta in town. Loud room.")],
            opening_hours=OpeningHours(open_now=True, weekday_descriptions=["Monday: Closed"]),
        )
        rec = ScoringEngine().score(detail, ITALIAN_MODERATE, origin=ORIGIN)
        assert rec.category == "Italian"
        assert rec.distance_miles == 0.0
        assert rec.open_now is True
        assert rec.hours == "Monday: Closed"
        assert rec.menu_highlights == ["Best pasta in town."]
        assert rec.description == "4.6-star Italian restaurant at x Main St, 120 reviews."

    def test_model_judgment_is_authoritative(self):
        detail = make_detail("x", rating=4.6)
        judgment = ModelJudgment(confidence=0.3, reasons=["cozy candlelit room"], description="A hidden gem.")
        rec = ScoringEngine().score(detail, ITALIAN_MODERATE, judgment)
        assert rec.confidence == 0.3
        assert rec.reasons == ["cozy candlelit room"]
        assert rec.description == "A hidden gem."

    def test_model_weight_blends(self):
        detail = make_detail("x", rating=None, review_count=0, price_tier=None, business_status=None)
        judgment = ModelJudgment(confidence=1.0, reasons=["fits"])
        rec = ScoringEngine(model_weight=0.5).score(detail, PreferenceQuery(), judgment)
        assert rec.confidence == 0.75

    def test_empty_model_reasons_keep_deterministic(self):
        detail = make_detail("x", rating=4.6)
        rec = ScoringEngine().score(detail, ITALIAN_MODERATE, ModelJudgment(confidence=0.9))
        assert rec.reasons[0] == "highly rated (4.6/5)"

    def test_permanently_closed_rejected(self):
        detail = make_detail("x", business_status=BusinessStatus.closed_permanently)
        with pytest.raises(ValueError):
            ScoringEngine().score(detail, PreferenceQuery())

    def test_invalid_model_weight(self):
        with pytest.raises(ValueError):
            ScoringEngine(model_weight=1.5)

    def test_describe_place_without_rating(self):
        detail = make_detail("x", rating=None, review_count=0, primary_type="cafe")
        assert describe_place(detail) == "Cafe at x Main St."


class TestRecommendationModel:
    def test_reasons_required_when_confident(self):
        with pytest.raises(ValidationError):
            Recommendation(place_id="x", name="x", category="Cafe", confidence=0.5, reasons=[])

    def test_at_most_three_reasons(self):
        with pytest.raises(ValidationError):
            Recommendation(place_id="x", name="x", category="Cafe", confidence=0.5, reasons=["a", "b", "c", "d"])


class TestDistance:
    def test_known_distance(self):
        nyc = Coordinates(latitude=40.7128, longitude=-74.0060)
        philly = Coordinates(latitude=39.9526, longitude=-75.1652)
        assert distance_miles(nyc, philly) == pytest.approx(80.6, abs=1.5)

    def test_describe_distance(self):
        assert describe_distance(0.05) == "less than 0.1 miles away"
        assert describe_distance(1.0) == "1 mile away"
        assert describe_distance(3.2) == "3.2 miles away"


# ── Ranking ──────────────────────────────────────────────────────────────


class TestRankerAndSelector:
    def test_blended_score(self):
        assert blended_score(_rec("a", 1.0, 5.0)) == pytest.approx(1.0)
        assert blended_score(_rec("a", 0.5, None)) == pytest.approx(0.35)

    def test_orders_by_blended_score(self):
        recs = [_rec("low", 0.6, 4.0), _rec("high", 0.9, 4.0), _rec("mid", 0.8, 4.0)]
        assert [r.place_id for r in RankerAndSelector().select(recs)] == ["high", "mid", "low"]

    def test_tie_survives_float_rounding(self):
        # 0.7 * 0.5 + 0.3 * 3.7 / 5 and 0.7 * 0.56 + 0.3 * 3.0 / 5 are both 0.572.
        recs = [
            _rec("obscure", 0.56, 3.0, review_count=10, name="Obscure"),
            _rec("popular", 0.5, 3.7, review_count=500, name="Popular"),
        ]
        assert [r.place_id for r in RankerAndSelector().select(recs)] == ["popular", "obscure"]

    def test_ties_broken_by_reviews_then_name(self):
        recs = [
            _rec("b", 0.8, 4.0, review_count=10, name="Bravo"),
            _rec("a", 0.8, 4.0, review_count=10, name="Alpha"),
            _rec("c", 0.8, 4.0, review_count=99, name="Charlie"),
        ]
        assert [r.name for r in RankerAndSelector().select(recs)] == ["Charlie", "Alpha", "Bravo"]

    def test_cap(self):
        recs = [_rec(str(i), 0.5 + i / 100, 4.0) for i in range(10)]
        assert len(RankerAndSelector(cap=6).select(recs)) == 6
        assert len(RankerAndSelector(cap=6).select(recs, cap=2)) == 2
        assert RankerAndSelector(cap=6).select(recs, cap=0) == []

    def test_does_not_mutate_input(self):
        recs = [_rec("low", 0.6, 4.0), _rec("high", 0.9, 4.0)]
        RankerAndSelector().select(recs)
        assert [r.place_id for r in recs] == ["low", "high"]


# ── Model re-ranking ─────────────────────────────────────────────────────


class TestReranking:
    def test_parse_judgments_ignores_unknown_and_duplicate_ids(self):
        payload = {
            "restaurants": [
                {"id": "a", "confidence": 1.7, "reasons": "great patio", "description": "Sunny."},
                {"id": "zzz", "confidence": 0.9, "reasons": ["invented"]},
                {"id": "a", "confidence": 0.1, "reasons": ["second copy"]},
                {"id": "b", "confidence": "high"},
            ],
        }
        judgments = parse_judgments(payload, {"a", "b"})
        assert list(judgments) == ["a"]
        assert judgments["a"].confidence == 1.0
        assert judgments["a"].reasons == ["great patio"]

    def test_parse_judgments_accepts_recommendations_key(self):
        judgments = parse_judgments({"recommendations": [{"id": "a", "confidence": 0.4}]}, {"a"})
        assert judgments["a"].confidence == 0.4

    def test_model_assisted_ranking(self):
        details = [make_detail("a"), make_detail("b")]
        backend = StubCompletionBackend({"restaurants": [{"id": "b", "confidence": 0.95, "reasons": ["spot on"]}]})
        judgments = asyncio.run(ModelAssistedRanking(backend).judge("romantic dinner", ITALIAN_MODERATE, details))
        assert set(judgments) == {"b"}
        prompt = backend.calls[0][1]
        assert "romantic dinner" in prompt
        assert "| a | Place a | Italian | $$ | 4.2 | 120 |" in prompt

    def test_model_assisted_ranking_fallback(self):
        judgments = asyncio.run(
            ModelAssistedRanking(StubCompletionBackend(None)).judge("x", PreferenceQuery(), [make_detail("a")])
        )
        assert judgments == {}

    def test_candidate_cap(self):
        details = [make_detail(str(i)) for i in range(5)]
        backend = StubCompletionBackend({"restaurants": [{"id": "4", "confidence": 0.9}]})
        judgments = asyncio.run(ModelAssistedRanking(backend, candidate_cap=2).judge("x", PreferenceQuery(), details))
        assert judgments == {}

    def test_deterministic_ranking(self):
        assert asyncio.run(DeterministicRanking().judge("x", PreferenceQuery(), [make_detail("a")])) == {}

    def test_special_requests_reach_the_prompt(self):
        backend = StubCompletionBackend({"restaurants": []})
        pref = PreferenceQuery(special_requests=["outdoor seating", "live music"])
        asyncio.run(ModelAssistedRanking(backend).judge("dinner", pref, [make_detail("a")]))
        assert "- Special requests: outdoor seating, live music" in backend.calls[0][1]


# ── Model descriptions ───────────────────────────────────────────────────


class TestDescriptionWriter:
    def _scored(self, *details):
        return [ScoringEngine().score(d, ITALIAN_MODERATE) for d in details]

    def test_replaces_description_only(self):
        detail = make_detail("a", rating=4.6)
        [rec] = self._scored(detail)
        backend = StubCompletionBackend({"description": "  Handmade pasta in a candlelit room.  "})

        [written] = asyncio.run(DescriptionWriter(backend).rewrite([rec], [detail], ITALIAN_MODERATE))

        assert written.description == "Handmade pasta in a candlelit room."
        assert written.confidence == rec.confidence
        assert written.reasons == rec.reasons
        assert "Name: Place a" in backend.calls[0][1]

    def test_failure_keeps_synthesized_text(self):
        details = [make_detail("a"), make_detail("b")]
        recs = self._scored(*details)
        backend = StubCompletionBackend(None, {"description": ""})

        written = asyncio.run(DescriptionWriter(backend).rewrite(recs, details, ITALIAN_MODERATE))

        assert [r.description for r in written] == [r.description for r in recs]
        assert [r.place_id for r in written] == ["a", "b"]

    def test_empty_input(self):
        backend = StubCompletionBackend()
        assert asyncio.run(DescriptionWriter(backend).rewrite([], [], PreferenceQuery())) == []
        assert backend.calls == []
