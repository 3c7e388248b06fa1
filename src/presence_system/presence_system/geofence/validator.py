from __future__ import annotations

import math
from typing import Optional

from ..core.constants import EARTH_RADIUS_METERS
from .model import Coordinates, GeofenceResult


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in metres on a spherical Earth."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def validate(subject: Optional[Coordinates], anchor: Coordinates, radius_meters: float) -> GeofenceResult:
    """Decide whether ``subject`` lies inside the circle around ``anchor``.

    Missing subject coordinates fail closed. A distance equal to the radius
    counts as inside.
    """
    if subject is None:
        return GeofenceResult(within_radius=False, distance_meters=None)

    distance = haversine_distance(subject, anchor)
    return GeofenceResult(within_radius=distance <= float(radius_meters), distance_meters=distance)
