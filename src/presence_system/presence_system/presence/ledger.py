from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..common.datetime_utils import Clock, utc_now
from ..common.validators import require_non_empty
from ..core.enums import PresenceMethod, RejectionReason, TokenCheckReason
from ..core.exceptions import DuplicatePresenceError, TransientError
from ..geofence import validator as geofence
from ..realtime.feed import ChangeFeed
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from ..tokens.authority import TokenAuthority
from .model import AdmissionResult, PresenceClaim, PresenceEvent
from .repository import PresenceRepository

logger = logging.getLogger(__name__)


class PresenceLedger:
    """The single authority deciding whether a claim becomes an attendance record.

    Admission is idempotent per (session, subject). The repository's uniqueness
    constraint is what actually guarantees exactly-once; the pre-check in
    ``admit`` only saves a doomed insert.
    """

    def __init__(
        self,
        presence: PresenceRepository,
        sessions: SessionRepository,
        tokens: TokenAuthority,
        feed: Optional[ChangeFeed] = None,
        *,
        clock: Clock = utc_now,
        geofence_manual_marks: bool = False,
    ):
        self._presence = presence
        self._sessions = sessions
        self._tokens = tokens
        self._feed = feed
        self._clock = clock
        self._geofence_manual_marks = bool(geofence_manual_marks)

    def admit(self, claim: PresenceClaim) -> AdmissionResult:
        require_non_empty(claim.session_id, "session_id")
        require_non_empty(claim.subject_id, "subject_id")

        existing = self._find_existing(claim)
        if existing is not None:
            logger.info("Subject %s already admitted to session %s", claim.subject_id, claim.session_id)
            return AdmissionResult.accepted(existing, duplicate=True)

        session = self._sessions.get_by_id(claim.session_id)
        if session is None:
            logger.info("Rejected claim for unknown session %s", claim.session_id)
            return AdmissionResult.rejected(RejectionReason.INVALID_TOKEN)
        if not session.is_active:
            return AdmissionResult.rejected(RejectionReason.SESSION_CLOSED)

        if claim.method == PresenceMethod.TOKEN_SCAN:
            check = self._tokens.validate(session.session_id, claim.token)
            if not check.valid:
                reason = (
                    RejectionReason.EXPIRED_TOKEN
                    if check.reason == TokenCheckReason.EXPIRED
                    else RejectionReason.INVALID_TOKEN
                )
                logger.info(
                    "Rejected %s for session %s: token %s",
                    claim.subject_id, session.session_id, check.reason.value if check.reason else "invalid",
                )
                return AdmissionResult.rejected(reason)

        if self._needs_geofence(session, claim):
            if session.anchor is None:
                logger.warning("Session %s requires geolocation but has no anchor", session.session_id)
                return AdmissionResult.rejected(RejectionReason.OUT_OF_RANGE)
            fence = geofence.validate(claim.coordinates, session.anchor, session.radius_meters)
            if not fence.within_radius:
                logger.info(
                    "Rejected %s for session %s: out of range (%s m)",
                    claim.subject_id, session.session_id, fence.distance_meters,
                )
                return AdmissionResult.rejected(RejectionReason.OUT_OF_RANGE, distance_meters=fence.distance_meters)

        return self._persist(claim, session)

    def get_for_session(self, session_id: str) -> Sequence[PresenceEvent]:
        return list(self._presence.list_for_session(session_id))

    def get_for_subject(self, subject_id: str, class_id: Optional[str] = None) -> Sequence[PresenceEvent]:
        return list(self._presence.list_for_subject(subject_id, class_id=class_id))

    def _find_existing(self, claim: PresenceClaim) -> Optional[PresenceEvent]:
        try:
            return self._presence.get_for_session_and_subject(claim.session_id, claim.subject_id)
        except TransientError:
            # Non-fatal: the uniqueness constraint on insert still decides.
            logger.warning(
                "Duplicate pre-check failed for %s/%s; continuing", claim.session_id, claim.subject_id
            )
            return None

    def _needs_geofence(self, session: Session, claim: PresenceClaim) -> bool:
        if not session.require_geolocation:
            return False
        return claim.method == PresenceMethod.TOKEN_SCAN or self._geofence_manual_marks

    def _persist(self, claim: PresenceClaim, session: Session) -> AdmissionResult:
        now = self._clock()
        try:
            event = self._presence.insert_admitted(
                session_id=session.session_id,
                subject_id=claim.subject_id,
                method=claim.method,
                client_marked_at=claim.client_marked_at,
                admitted_at=now,
                coordinates=claim.coordinates,
                synced_at=now if claim.via_outbox else None,
            )
        except DuplicatePresenceError:
            logger.info(
                "Concurrent admission for %s/%s resolved by uniqueness constraint",
                session.session_id, claim.subject_id,
            )
            return AdmissionResult.accepted(self._find_existing(claim), duplicate=True)

        logger.info("Admitted %s to session %s (event %s)", claim.subject_id, session.session_id, event.event_id)
        if self._feed is not None:
            self._feed.publish(event)
        return AdmissionResult.accepted(event)
