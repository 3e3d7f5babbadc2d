"""
Geolocation similarity between two listings.
"""

import math
from typing import Optional

from ..models import Coordinates

EARTH_RADIUS_M = 6371000
SAME_POINT_DISTANCE_M = 50
ZERO_SIMILARITY_DISTANCE_M = 500


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def location_similarity(a: Optional[Coordinates], b: Optional[Coordinates]) -> float:
    """1.0 within 50 m, linear decay to 0 at 500 m; 0 when coordinates are missing."""
    if a is None or b is None:
        return 0.0
    distance = haversine_distance(a, b)
    if distance <= SAME_POINT_DISTANCE_M:
        return 1.0
    return max(0.0, 1.0 - distance / ZERO_SIMILARITY_DISTANCE_M)
