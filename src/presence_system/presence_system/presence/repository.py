from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import PresenceMethod
from ..geofence.model import Coordinates
from .model import PresenceEvent


class PresenceRepository(Protocol):
    def get_for_session_and_subject(self, session_id: str, subject_id: str) -> Optional[PresenceEvent]:
        raise NotImplementedError

    def insert_admitted(
        self,
        *,
        session_id: str,
        subject_id: str,
        method: PresenceMethod,
        client_marked_at: datetime,
        admitted_at: datetime,
        coordinates: Optional[Coordinates] = None,
        synced_at: Optional[datetime] = None,
    ) -> PresenceEvent:
        """Insert under the (session_id, subject_id) uniqueness constraint.

        Raises DuplicatePresenceError when the pair is already admitted.
        """

        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[PresenceEvent]:
        """Admitted events, oldest first."""

        raise NotImplementedError

    def list_for_session_after(self, session_id: str, after_event_id: int) -> Sequence[PresenceEvent]:
        """Events admitted after ``after_event_id``, in admission order (used by polling feeds)."""

        raise NotImplementedError

    def list_for_subject(self, subject_id: str, *, class_id: Optional[str] = None) -> Sequence[PresenceEvent]:
        """Admitted events for a subject, newest first."""

        raise NotImplementedError
