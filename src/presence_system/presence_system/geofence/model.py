from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..common.validators import require_latitude, require_longitude
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional["Coordinates"]:
        """Build from a ``{"latitude": .., "longitude": ..}`` payload; None when absent."""
        if not data:
            return None
        if not isinstance(data, dict):
            raise ValidationError("coordinates must be an object with latitude and longitude")
        if data.get("latitude") is None or data.get("longitude") is None:
            return None
        return cls(
            latitude=require_latitude(data["latitude"]),
            longitude=require_longitude(data["longitude"]),
        )

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class GeofenceResult:
    within_radius: bool
    distance_meters: Optional[float]
