"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math

from prayer_reminder.models import Coordinates

EARTH_RADIUS_KM = 6371.0
MILES_PER_KM = 0.621371


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in kilometers between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in kilometers.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two coordinates in kilometers."""

    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_radius(point: Coordinates, center: Coordinates, radius_km: float) -> bool:
    """Check whether a point is strictly inside a circle around ``center``."""

    return distance_km(point, center) < radius_km


def km_to_miles(km: float) -> float:
    return km * MILES_PER_KM


def format_distance(km: float, unit: str) -> str:
    """Format a distance for display, e.g. ``"62 mi"`` or ``"100 km"``."""

    if unit == "miles":
        return f"{round(km_to_miles(km))} mi"
    return f"{round(km)} km"
