from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..places.models import Coordinates, PriceTier


def _normalise_terms(value: object) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    return frozenset(str(v).strip().lower() for v in value if str(v).strip())


class PreferenceQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    cuisine_types: frozenset[str] = Field(
        default_factory=frozenset, description="Empty means any cuisine",
    )
    price_tier: PriceTier = PriceTier.any
    occasion: str = ""
    ambiance: str = ""
    dietary_restrictions: frozenset[str] = Field(default_factory=frozenset)
    radius: float = Field(default=10.0, gt=0.0, description="Search radius in miles")
    party_size: int = Field(default=2, ge=1)
    special_requests: tuple[str, ...] = Field(
        default=(), description="Free-form asks such as outdoor seating or live music",
    )

    @field_validator("cuisine_types", "dietary_restrictions", mode="before")
    @classmethod
    def _lowercase_terms(cls, value: object) -> frozenset[str]:
        return _normalise_terms(value)

    @field_validator("special_requests", mode="before")
    @classmethod
    def _strip_requests(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(str(v).strip() for v in value if str(v).strip())


class ModelJudgment(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)
    description: str = ""


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    place_id: str
    name: str
    category: str
    price_tier: PriceTier | None = None
    rating: float | None = None
    review_count: int = 0
    address: str = ""
    phone: str = ""
    website: str = ""
    hours: str = ""
    open_now: bool | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list, max_length=3)
    description: str = ""
    menu_highlights: list[str] = Field(default_factory=list)
    distance_miles: float | None = None

    @model_validator(mode="after")
    def _reasons_when_confident(self) -> Recommendation:
        if self.confidence > 0 and not self.reasons:
            raise ValueError("a recommendation with positive confidence needs a reason")
        return self


class PreferenceSearchRequest(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    cuisine_types: list[str] = Field(default_factory=list)
    price_tier: PriceTier = PriceTier.any
    occasion: str = ""
    ambiance: str = ""
    dietary_restrictions: list[str] = Field(default_factory=list)
    radius: float = Field(default=10.0, gt=0.0, le=100.0)
    party_size: int = Field(default=2, ge=1, le=50)
    special_requests: list[str] = Field(default_factory=list, max_length=10)
    limit: int | None = Field(default=None, ge=1, le=20)

    def to_preference(self) -> PreferenceQuery:
        return PreferenceQuery(
            cuisine_types=self.cuisine_types,
            price_tier=self.price_tier,
            occasion=self.occasion,
            ambiance=self.ambiance,
            dietary_restrictions=self.dietary_restrictions,
            radius=self.radius,
            party_size=self.party_size,
            special_requests=self.special_requests,
        )

    def origin(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class FreeTextSearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=1000)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    limit: int | None = Field(default=None, ge=1, le=20)

    def origin(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation]
    total: int
    message: str | None = None
