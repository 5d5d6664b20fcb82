from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .base import GeoPlaceSource
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .errors import PlacesRequestError, PlacesResponseError, PlacesUnavailableError
from .models import (
    BusinessStatus,
    Coordinates,
    OpeningHours,
    OpeningPeriod,
    PlaceDetail,
    PlaceStub,
    PriceTier,
    ReviewSnippet,
    TimePoint,
)

logger = logging.getLogger(__name__)

_STUB_FIELDS = [
    "id",
    "displayName",
    "primaryType",
    "rating",
    "userRatingCount",
    "priceLevel",
    "location",
    "formattedAddress",
]

_DETAIL_FIELDS = _STUB_FIELDS + [
    "nationalPhoneNumber",
    "internationalPhoneNumber",
    "websiteUri",
    "regularOpeningHours",
    "businessStatus",
    "reviews",
]

_PRICE_LEVELS: dict[str, PriceTier] = {
    "PRICE_LEVEL_FREE": PriceTier.budget,
    "PRICE_LEVEL_INEXPENSIVE": PriceTier.budget,
    "PRICE_LEVEL_MODERATE": PriceTier.moderate,
    "PRICE_LEVEL_EXPENSIVE": PriceTier.upscale,
    "PRICE_LEVEL_VERY_EXPENSIVE": PriceTier.fine_dining,
}

_BUSINESS_STATUSES: dict[str, BusinessStatus] = {
    "OPERATIONAL": BusinessStatus.operational,
    "CLOSED_TEMPORARILY": BusinessStatus.closed_temporarily,
    "CLOSED_PERMANENTLY": BusinessStatus.closed_permanently,
}

# Status codes that mean the service as a whole is not usable right now.
_UNAVAILABLE_STATUSES = {401, 403, 429}


def parse_price_level(value: str | None) -> PriceTier | None:
    if not value:
        return None
    return _PRICE_LEVELS.get(value)


def _parse_location(raw: dict[str, Any] | None) -> Coordinates | None:
    if not raw or "latitude" not in raw or "longitude" not in raw:
        return None
    return Coordinates(latitude=raw["latitude"], longitude=raw["longitude"])


def _stub_fields(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "place_id": raw.get("id", ""),
        "name": (raw.get("displayName") or {}).get("text", ""),
        "rating": raw.get("rating"),
        "price_tier": parse_price_level(raw.get("priceLevel")),
        "review_count": raw.get("userRatingCount") or 0,
        "address": raw.get("formattedAddress", ""),
        "primary_type": raw.get("primaryType"),
        "location": _parse_location(raw.get("location")),
    }


def _parse_time_point(raw: dict[str, Any]) -> TimePoint:
    return TimePoint(
        day=raw.get("day", 0),
        hour=raw.get("hour", 0),
        minute=raw.get("minute", 0),
    )


def _parse_opening_hours(raw: dict[str, Any] | None) -> OpeningHours | None:
    if not raw:
        return None
    periods = []
    for period in raw.get("periods", []):
        if "open" not in period:
            continue
        close = period.get("close")
        periods.append(OpeningPeriod(
            open=_parse_time_point(period["open"]),
            close=_parse_time_point(close) if close else None,
        ))
    return OpeningHours(
        open_now=raw.get("openNow"),
        periods=periods,
        weekday_descriptions=list(raw.get("weekdayDescriptions", [])),
    )


def _parse_review(raw: dict[str, Any]) -> ReviewSnippet:
    text = raw.get("text") or raw.get("originalText") or {}
    return ReviewSnippet(
        author=(raw.get("authorAttribution") or {}).get("displayName", ""),
        rating=raw.get("rating"),
        text=text.get("text", ""),
        relative_time=raw.get("relativePublishTimeDescription", ""),
    )


def parse_place_stub(raw: dict[str, Any]) -> PlaceStub:
    """Build a ``PlaceStub`` from a Places API ``Place`` resource."""
    return PlaceStub(**_stub_fields(raw))


def parse_place_detail(raw: dict[str, Any], review_limit: int = 5) -> PlaceDetail:
    """Build a ``PlaceDetail`` from a Places API ``Place`` resource."""
    status = raw.get("businessStatus")
    return PlaceDetail(
        **_stub_fields(raw),
        phone=raw.get("nationalPhoneNumber") or raw.get("internationalPhoneNumber") or "",
        website=raw.get("websiteUri", ""),
        opening_hours=_parse_opening_hours(raw.get("regularOpeningHours")),
        reviews=[_parse_review(r) for r in raw.get("reviews", [])[:review_limit]],
        business_status=_BUSINESS_STATUSES.get(status) if status else None,
    )


class GooglePlacesClient(GeoPlaceSource):
    """GeoPlaceSource backed by the Google Places API (New)."""

    def __init__(
        self,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, fields: list[str]) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.config.api_key,
            "X-Goog-FieldMask": ",".join(fields),
        }

    def _circle(self, latitude: float, longitude: float, radius_meters: float) -> dict[str, Any]:
        return {
            "circle": {
                "center": {"latitude": latitude, "longitude": longitude},
                "radius": min(float(radius_meters), self.config.max_radius_meters),
            },
        }

    async def _request(
        self,
        method: str,
        path: str,
        fields: list[str],
        body: dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> dict[str, Any] | None:
        """Send one request; ``None`` means the resource does not exist."""
        if not self.config.api_key:
            raise PlacesUnavailableError("Google Maps API key not configured")

        url = f"{self.config.base_url}/{path}"
        try:
            response = await self._client.request(
                method, url, headers=self._headers(fields), json=body,
            )
        except httpx.TransportError as exc:
            raise PlacesUnavailableError(f"Google Places unreachable: {exc}") from exc

        status = response.status_code
        if status in _UNAVAILABLE_STATUSES or status >= 500:
            raise PlacesUnavailableError(f"Google Places returned {status} for {path}")
        if status == 404 and allow_missing:
            return None
        if response.is_error:
            raise PlacesRequestError(f"Google Places returned {status} for {path}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise PlacesResponseError(f"Google Places sent invalid JSON for {path}") from exc
        if not isinstance(payload, dict):
            raise PlacesResponseError(f"Google Places sent a non-object payload for {path}")
        return payload

    def _parse_stubs(self, payload: dict[str, Any] | None) -> list[PlaceStub]:
        stubs: list[PlaceStub] = []
        # The API omits "places" entirely when nothing matched.
        for raw in (payload or {}).get("places", []):
            try:
                stubs.append(parse_place_stub(raw))
            except (ValidationError, AttributeError, TypeError):
                logger.warning("Skipping malformed place in search results: %r", raw)
        return stubs

    async def search_nearby(
        self, latitude: float, longitude: float, radius_meters: float,
    ) -> list[PlaceStub]:
        body = {
            "includedTypes": list(self.config.included_types),
            "maxResultCount": self.config.max_result_count,
            "locationRestriction": self._circle(latitude, longitude, radius_meters),
        }
        payload = await self._request(
            "POST", "places:searchNearby", [f"places.{f}" for f in _STUB_FIELDS], body,
        )
        stubs = self._parse_stubs(payload)
        logger.debug("Nearby search at %s,%s returned %d places", latitude, longitude, len(stubs))
        return stubs

    async def search_by_text(
        self, query: str, latitude: float, longitude: float, radius_meters: float,
    ) -> list[PlaceStub]:
        body = {
            "textQuery": query,
            "pageSize": self.config.max_result_count,
            "locationBias": self._circle(latitude, longitude, radius_meters),
        }
        payload = await self._request(
            "POST", "places:searchText", [f"places.{f}" for f in _STUB_FIELDS], body,
        )
        return self._parse_stubs(payload)

    async def get_detail(self, place_id: str) -> PlaceDetail | None:
        payload = await self._request(
            "GET", f"places/{place_id}", _DETAIL_FIELDS, allow_missing=True,
        )
        if payload is None:
            return None
        try:
            return parse_place_detail(payload, review_limit=self.config.review_limit)
        except (ValidationError, AttributeError, TypeError) as exc:
            raise PlacesResponseError(f"Malformed detail for place {place_id}") from exc
