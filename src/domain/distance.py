"""
Trip geometry for fare quotes.

Great-circle distance between the confirmed origin and destination, and a
flat-speed duration estimate.  Neither accounts for the road network;
quotes are indicative until a job is matched.
"""

from __future__ import annotations

import math

from .entities import Location

EARTH_RADIUS_KM = 6_371.0
AVERAGE_SPEED_KMH = 30.0


def haversine_km(origin: Location, destination: Location) -> float:
    """Great-circle distance in **km** between two locations."""
    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    half_dlat = (lat2 - lat1) / 2
    half_dlng = math.radians(destination.longitude - origin.longitude) / 2

    h = math.sin(half_dlat) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(half_dlng) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def estimate_minutes(distance_km: float, speed_kmh: float = AVERAGE_SPEED_KMH) -> float:
    if speed_kmh <= 0:
        raise ValueError("speed must be positive")
    return distance_km / speed_kmh * 60.0
