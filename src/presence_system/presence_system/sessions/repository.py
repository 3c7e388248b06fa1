from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..core.enums import SessionMode
from ..geofence.model import Coordinates
from .model import RotatingToken, Session


class SessionRepository(Protocol):
    """Persistence collaborator for sessions and their current token.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def create(
        self,
        *,
        session_id: str,
        class_id: str,
        instructor_id: str,
        started_at: datetime,
        mode: SessionMode,
        require_geolocation: bool,
        anchor: Optional[Coordinates],
        radius_meters: float,
    ) -> Session:
        raise NotImplementedError

    def close(self, session_id: str, *, ended_at: datetime) -> bool:
        """Set ended_at once; returns False if the session was already closed."""

        raise NotImplementedError

    def get_token(self, session_id: str) -> Optional[RotatingToken]:
        raise NotImplementedError

    def replace_token(self, token: RotatingToken, *, expected_value: Optional[str]) -> bool:
        """Compare-and-set the session's current token.

        Succeeds only if the stored value still equals ``expected_value``
        (None meaning "no token yet") and the session is active.
        """

        raise NotImplementedError

    def clear_token(self, session_id: str) -> None:
        raise NotImplementedError
