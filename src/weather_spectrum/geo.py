"""Great-circle distance helpers."""

from __future__ import annotations

import math

EARTH_RADIUS_MILES = 3959
METERS_PER_MILE = 1609.34


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two coordinates in miles (Haversine formula)."""
    for value in (lat1, lon1, lat2, lon2):
        if not math.isfinite(value):
            raise ValueError(f"Coordinate must be a finite number, got {value!r}")

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_MILES * c


def is_within_radius(lat1: float, lon1: float, lat2: float, lon2: float, radius_miles: float) -> bool:
    """Check if two coordinates are within a given radius (inclusive)."""
    return haversine_miles(lat1, lon1, lat2, lon2) <= radius_miles


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE
