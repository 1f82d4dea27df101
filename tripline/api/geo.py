# tripline/api/geo.py
"""Great-circle helpers."""

import math

from tripline.api.models import Coordinates

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371008.8


def distance(a: Coordinates, b: Coordinates) -> float:
    """Return the haversine distance between two coordinates in meters."""
    if a == b:
        return 0.0
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def format_distance(meters: float) -> str:
    """Format a distance for display: meters below 1 km, else km with one decimal."""
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


__all__ = ["EARTH_RADIUS_M", "distance", "format_distance"]
