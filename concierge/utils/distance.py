from __future__ import annotations

import math

from ..places.models import Coordinates

EARTH_RADIUS_MILES = 3959.0


def distance_miles(origin: Coordinates, target: Coordinates) -> float:
    """Great-circle distance between two points, rounded to 0.1 mile."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lat = math.radians(target.latitude - origin.latitude)
    d_lon = math.radians(target.longitude - origin.longitude)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_MILES * c, 1)


def describe_distance(miles: float) -> str:
    if miles < 0.1:
        return "less than 0.1 miles away"
    if miles == 1:
        return "1 mile away"
    return f"{miles} miles away"
