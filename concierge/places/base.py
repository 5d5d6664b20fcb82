from __future__ import annotations

from abc import ABC, abstractmethod

from .models import PlaceDetail, PlaceStub


class GeoPlaceSource(ABC):
    """Interface for the place-search service the pipeline consumes.

    Implementations raise ``PlacesUnavailableError`` when the service cannot
    be reached at all, and return an empty list when a search simply has no
    results.
    """

    @abstractmethod
    async def search_nearby(
        self, latitude: float, longitude: float, radius_meters: float,
    ) -> list[PlaceStub]:
        raise NotImplementedError

    @abstractmethod
    async def get_detail(self, place_id: str) -> PlaceDetail | None:
        """Return full detail for *place_id*, or ``None`` if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def search_by_text(
        self, query: str, latitude: float, longitude: float, radius_meters: float,
    ) -> list[PlaceStub]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
