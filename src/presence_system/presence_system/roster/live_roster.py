from __future__ import annotations

import bisect
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from ..identity.model import SubjectProfile
from ..identity.repository import IdentityLookup
from ..presence.ledger import PresenceLedger
from ..presence.model import PresenceEvent
from ..realtime.feed import ChangeFeed, FeedSubscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RosterEntry:
    event: PresenceEvent
    profile: SubjectProfile

    def to_dict(self) -> dict:
        body = self.event.to_dict()
        body["full_name"] = self.profile.full_name
        body["registration_number"] = self.profile.registration_number
        return body


OnAdmit = Callable[[RosterEntry], None]


def _lookup_profile(identities: Optional[IdentityLookup], subject_id: str) -> SubjectProfile:
    profile = None
    if identities is not None:
        try:
            profile = identities.get_profile(subject_id)
        except Exception:
            logger.warning("Profile lookup failed for %s", subject_id)
    return profile or SubjectProfile.unknown(subject_id)


class RosterSubscription:
    """One observer's view of a session: snapshot plus live admissions.

    Live events that arrive while the snapshot is loading are buffered, then
    everything is merged by event id, so an event delivered by both paths
    shows up once.
    """

    def __init__(self, session_id: str, on_admit: Optional[OnAdmit], identities: Optional[IdentityLookup]):
        self.session_id = session_id
        self._on_admit = on_admit
        self._identities = identities
        self._lock = threading.RLock()
        self._ready = False
        self._buffer: List[PresenceEvent] = []
        self._seen: Set[int] = set()
        self._keys: List[int] = []
        self._entries: List[RosterEntry] = []
        self._profiles: Dict[str, SubjectProfile] = {}
        self._feed_sub: Optional[FeedSubscription] = None

    @property
    def entries(self) -> List[RosterEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def active(self) -> bool:
        return self._feed_sub is not None and self._feed_sub.active

    def unsubscribe(self) -> None:
        if self._feed_sub is not None:
            self._feed_sub.cancel()
            logger.debug("Roster observer for session %s unsubscribed", self.session_id)

    def __enter__(self) -> "RosterSubscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()

    def _attach(self, feed_sub: FeedSubscription) -> None:
        self._feed_sub = feed_sub

    def _on_live(self, event: PresenceEvent) -> None:
        with self._lock:
            if not self._ready:
                self._buffer.append(event)
                return
            self._accept(event)

    def _load_snapshot(self, events: List[PresenceEvent]) -> None:
        with self._lock:
            merged = sorted(list(events) + self._buffer, key=lambda e: e.event_id)
            self._buffer = []
            for event in merged:
                self._accept(event)
            self._ready = True

    def _accept(self, event: PresenceEvent) -> None:
        if event.session_id != self.session_id or event.event_id in self._seen:
            return
        self._seen.add(event.event_id)

        entry = RosterEntry(event=event, profile=self._profile(event.subject_id))
        idx = bisect.bisect(self._keys, event.event_id)
        self._keys.insert(idx, event.event_id)
        self._entries.insert(idx, entry)

        if self._on_admit:
            try:
                self._on_admit(entry)
            except Exception:
                logger.exception("Roster callback failed for session %s", self.session_id)

    def _profile(self, subject_id: str) -> SubjectProfile:
        cached = self._profiles.get(subject_id)
        if cached:
            return cached
        profile = _lookup_profile(self._identities, subject_id)
        self._profiles[subject_id] = profile
        return profile


class LiveRoster:
    """Continuously updated list of admitted events for a session owner's view."""

    def __init__(self, ledger: PresenceLedger, feed: ChangeFeed, identities: Optional[IdentityLookup] = None):
        self._ledger = ledger
        self._feed = feed
        self._identities = identities

    def subscribe(self, session_id: str, on_admit: Optional[OnAdmit] = None) -> RosterSubscription:
        """Register interest; callers must ``unsubscribe`` on teardown."""
        sub = RosterSubscription(session_id, on_admit, self._identities)
        # Listen before reading the snapshot so nothing admitted in between is missed.
        sub._attach(self._feed.subscribe(session_id, sub._on_live))
        try:
            sub._load_snapshot(list(self._ledger.get_for_session(session_id)))
        except Exception:
            sub.unsubscribe()
            raise
        return sub

    def snapshot(self, session_id: str) -> List[RosterEntry]:
        """Current roster without subscribing, for one-off reads."""
        profiles: Dict[str, SubjectProfile] = {}
        entries = []
        for event in self._ledger.get_for_session(session_id):
            if event.subject_id not in profiles:
                profiles[event.subject_id] = _lookup_profile(self._identities, event.subject_id)
            entries.append(RosterEntry(event=event, profile=profiles[event.subject_id]))
        return entries

    def unsubscribe(self, sub: RosterSubscription) -> None:
        sub.unsubscribe()
