from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from ..common.datetime_utils import Clock, utc_now
from ..common.validators import require_non_empty, require_positive
from ..core.constants import DEFAULT_GEOFENCE_RADIUS_METERS
from ..core.enums import SessionMode
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..geofence.model import Coordinates
from ..identity.repository import IdentityLookup
from ..presence.repository import PresenceRepository
from ..tokens.authority import TokenAuthority
from .model import ManualCandidate, RotatingToken, Session
from .repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartedSession:
    session: Session
    token: RotatingToken


class SessionService:
    """Use cases around the session lifecycle: start, end, manual-mark roster."""

    def __init__(
        self,
        sessions: SessionRepository,
        tokens: TokenAuthority,
        presence: PresenceRepository,
        identities: Optional[IdentityLookup] = None,
        *,
        clock: Clock = utc_now,
        default_radius_meters: float = DEFAULT_GEOFENCE_RADIUS_METERS,
    ):
        self._sessions = sessions
        self._tokens = tokens
        self._presence = presence
        self._identities = identities
        self._clock = clock
        self._default_radius = float(default_radius_meters)

    def start_session(
        self,
        *,
        class_id: str,
        instructor_id: str,
        mode: SessionMode = SessionMode.PROFESSOR_GENERATES,
        require_geolocation: bool = False,
        anchor: Optional[Coordinates] = None,
        radius_meters: Optional[float] = None,
    ) -> StartedSession:
        class_id = require_non_empty(class_id, "class_id")
        instructor_id = require_non_empty(instructor_id, "instructor_id")

        radius = self._default_radius if radius_meters is None else require_positive(radius_meters, "radius_meters")
        if require_geolocation and anchor is None:
            raise ValidationError("A geolocated session needs anchor coordinates")

        session = self._sessions.create(
            session_id=str(uuid.uuid4()),
            class_id=class_id,
            instructor_id=instructor_id,
            started_at=self._clock(),
            mode=SessionMode(mode),
            require_geolocation=bool(require_geolocation),
            anchor=anchor,
            radius_meters=radius,
        )
        token = self._tokens.issue(session.session_id)
        logger.info("Session %s started for class %s by %s", session.session_id, class_id, instructor_id)
        return StartedSession(session=session, token=token)

    def end_session(self, session_id: str, *, instructor_id: Optional[str] = None) -> Session:
        """Close the session. Admitted events are untouched; later admits fail fast."""
        session = self.get_session(session_id)
        if instructor_id is not None and session.instructor_id != instructor_id:
            raise AuthorizationError("Only the session owner can end it")

        if session.is_active:
            self._sessions.close(session_id, ended_at=self._clock())
            self._tokens.revoke(session_id)
            logger.info("Session %s ended", session_id)
        return self.get_session(session_id)

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    def manual_candidates(self, session_id: str, *, search: str = "") -> Sequence[ManualCandidate]:
        """Enrolled subjects for manual marking, flagged when already present."""
        session = self.get_session(session_id)
        if self._identities is None:
            return []

        marked = {e.subject_id for e in self._presence.list_for_session(session_id)}
        term = (search or "").strip().lower()
        out = []
        for profile in self._identities.list_enrolled(session.class_id):
            if term and term not in profile.full_name.lower() and term not in profile.registration_number.lower():
                continue
            out.append(
                ManualCandidate(
                    subject_id=profile.subject_id,
                    full_name=profile.full_name,
                    registration_number=profile.registration_number,
                    marked=profile.subject_id in marked,
                )
            )
        return out
