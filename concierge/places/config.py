from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class PlacesConfig:
    api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    base_url: str = "https://places.googleapis.com/v1"
    timeout: float = 10.0
    max_result_count: int = 20
    max_radius_meters: float = 50_000.0
    review_limit: int = 5
    included_types: tuple[str, ...] = ("restaurant", "cafe", "bar", "bakery", "meal_takeaway")


DEFAULT_PLACES_CONFIG = PlacesConfig()
