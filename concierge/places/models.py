from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PriceTier(str, Enum):
    budget = "budget"
    moderate = "moderate"
    upscale = "upscale"
    fine_dining = "fine-dining"
    any = "any"

    @property
    def symbol(self) -> str:
        return _PRICE_SYMBOLS.get(self, "")


_PRICE_SYMBOLS = {
    PriceTier.budget: "$",
    PriceTier.moderate: "$$",
    PriceTier.upscale: "$$$",
    PriceTier.fine_dining: "$$$$",
}


class BusinessStatus(str, Enum):
    operational = "operational"
    closed_temporarily = "closed-temporarily"
    closed_permanently = "closed-permanently"


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class PlaceStub(BaseModel):
    model_config = ConfigDict(frozen=True)

    place_id: str = Field(..., min_length=1)
    name: str
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    price_tier: PriceTier | None = None
    review_count: int = Field(default=0, ge=0)
    address: str = ""
    primary_type: str | None = None
    location: Coordinates | None = None


class TimePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int = Field(..., ge=0, le=6)
    hour: int = Field(default=0, ge=0, le=24)
    minute: int = Field(default=0, ge=0, le=59)


class OpeningPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    open: TimePoint
    # Missing for places that never close.
    close: TimePoint | None = None


class OpeningHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    open_now: bool | None = None
    periods: list[OpeningPeriod] = Field(default_factory=list)
    weekday_descriptions: list[str] = Field(default_factory=list)


class ReviewSnippet(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: str = ""
    rating: float | None = None
    text: str = ""
    relative_time: str = ""


class PlaceDetail(PlaceStub):
    phone: str = ""
    website: str = ""
    opening_hours: OpeningHours | None = None
    reviews: list[ReviewSnippet] = Field(default_factory=list)
    business_status: BusinessStatus | None = None
