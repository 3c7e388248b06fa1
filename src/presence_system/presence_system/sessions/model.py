from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import SessionMode
from ..geofence.model import Coordinates


@dataclass(frozen=True)
class RotatingToken:
    """The single live proof-of-presence value for a session."""

    session_id: str
    value: str
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Session:
    """Domain entity: one attendance-taking window for one class."""

    session_id: str
    class_id: str
    instructor_id: str
    started_at: datetime
    mode: SessionMode
    require_geolocation: bool
    anchor: Optional[Coordinates] = None
    radius_meters: float = 0.0
    ended_at: Optional[datetime] = None
    token: Optional[RotatingToken] = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


@dataclass(frozen=True)
class ManualCandidate:
    """Read-model for the manual marking list."""

    subject_id: str
    full_name: str
    registration_number: str
    marked: bool
