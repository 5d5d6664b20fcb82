from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from pydantic import AliasChoices, BaseModel, Field, ValidationInfo, field_validator

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _as_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value  # type: ignore[return-value]


class ExtractedIntent(BaseModel):
    """Structured dining preferences as returned by the language model."""

    cuisine: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cuisine", "cuisines", "foodType", "food_type"),
    )
    price_range: str | None = Field(
        default=None,
        validation_alias=AliasChoices("price_range", "priceRange", "price_tier"),
    )
    occasion: str | None = None
    ambiance: str | None = None
    dietary_restrictions: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dietary_restrictions", "dietaryRestrictions", "dietary"),
    )
    distance: float | None = None
    party_size: int | None = Field(
        default=None, validation_alias=AliasChoices("party_size", "groupSize", "group_size"),
    )
    special_requests: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("special_requests", "specialRequests"),
    )

    @field_validator("cuisine", "dietary_restrictions", "special_requests", mode="before")
    @classmethod
    def _split_terms(cls, value: object) -> list[str]:
        return _as_list(value)

    @field_validator("distance", "party_size", mode="before")
    @classmethod
    def _coerce_number(cls, value: object, info: ValidationInfo) -> float | int | None:
        # Models often answer "5 miles" or "4 people"; anything unreadable is dropped.
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            match = _NUMBER.search(value)
            if match is None:
                return None
            number = float(match.group())
        else:
            return None
        return int(number) if info.field_name == "party_size" else number

    @field_validator("distance", "party_size")
    @classmethod
    def _positive_or_missing(cls, value: float | int | None) -> float | int | None:
        if value is not None and value <= 0:
            return None
        return value


@dataclass(frozen=True)
class ParseSuccess:
    intent: ExtractedIntent


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = Union[ParseSuccess, ParseFailure]


class RestaurantSuggestion(BaseModel):
    """A named restaurant the language model believes matches the request."""

    name: str = Field(..., min_length=1)
    address: str | None = None
    reasoning: str | None = None

    @property
    def search_text(self) -> str:
        return f"{self.name} {self.address or ''}".strip()
