from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from ..core.constants import DEFAULT_FEED_POLL_SECONDS
from ..core.exceptions import TransientError
from ..presence.model import PresenceEvent
from ..presence.repository import PresenceRepository

logger = logging.getLogger(__name__)

Listener = Callable[[PresenceEvent], None]


@dataclass
class FeedSubscription:
    session_id: str
    subscription_id: int
    _cancel: Callable[["FeedSubscription"], None] = field(repr=False)
    active: bool = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._cancel(self)


class ChangeFeed(Protocol):
    """Change notifications for newly admitted presence events, filtered by session."""

    def subscribe(self, session_id: str, listener: Listener) -> FeedSubscription:
        raise NotImplementedError

    def publish(self, event: PresenceEvent) -> None:
        raise NotImplementedError


class InMemoryChangeFeed:
    """In-process fan-out. Listeners run on the publishing thread."""

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._listeners: Dict[str, Dict[int, Listener]] = {}

    def subscribe(self, session_id: str, listener: Listener) -> FeedSubscription:
        with self._lock:
            sub_id = next(self._ids)
            self._listeners.setdefault(session_id, {})[sub_id] = listener
        return FeedSubscription(session_id=session_id, subscription_id=sub_id, _cancel=self._remove)

    def publish(self, event: PresenceEvent) -> None:
        # Listeners run outside the lock; they may do I/O and must tolerate
        # concurrent or out-of-order delivery (the roster orders by event id).
        with self._lock:
            listeners = list(self._listeners.get(event.session_id, {}).values())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Presence listener failed for session %s", event.session_id)

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(session_id, {}))

    def _remove(self, sub: FeedSubscription) -> None:
        with self._lock:
            listeners = self._listeners.get(sub.session_id)
            if listeners is None:
                return
            listeners.pop(sub.subscription_id, None)
            if not listeners:
                del self._listeners[sub.session_id]


class PollingChangeFeed:
    """Change feed for multi-process deployments.

    Polls the presence repository for rows past the last seen event id, one
    thread per watched session. ``publish`` is a no-op: inserts from any
    process become visible through polling.
    """

    def __init__(self, presence: PresenceRepository, *, interval_seconds: float = DEFAULT_FEED_POLL_SECONDS):
        self._presence = presence
        self._interval = float(interval_seconds)
        self._fanout = InMemoryChangeFeed()
        self._lock = threading.Lock()
        self._pollers: Dict[str, "_SessionPoller"] = {}

    def subscribe(self, session_id: str, listener: Listener) -> FeedSubscription:
        # Subscribing and starting the poller happen under one lock so a
        # concurrent release cannot stop the poller this listener relies on.
        with self._lock:
            inner = self._fanout.subscribe(session_id, listener)
            if session_id not in self._pollers:
                poller = _SessionPoller(self, session_id, self._interval)
                self._pollers[session_id] = poller
                poller.start()
        return FeedSubscription(session_id=session_id, subscription_id=inner.subscription_id, _cancel=lambda _: self._release(inner))

    def publish(self, event: PresenceEvent) -> None:
        return None

    def watched_sessions(self) -> List[str]:
        with self._lock:
            return sorted(self._pollers)

    def poll_once(self, session_id: str, after_event_id: int) -> int:
        last = after_event_id
        for event in self._presence.list_for_session_after(session_id, after_event_id):
            self._fanout.publish(event)
            last = max(last, event.event_id)
        return last

    def close(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pollers = list(self._pollers.values())
            self._pollers.clear()
        for poller in pollers:
            poller.stop(timeout)

    def _release(self, inner: FeedSubscription) -> None:
        with self._lock:
            inner.cancel()
            if self._fanout.subscriber_count(inner.session_id):
                return
            poller = self._pollers.pop(inner.session_id, None)
        if poller is not None:
            poller.stop(self._interval)


class _SessionPoller:
    def __init__(self, feed: PollingChangeFeed, session_id: str, interval_seconds: float):
        self._feed = feed
        self._session_id = session_id
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._interval = interval_seconds
        self._last_event_id = 0

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=f"presence-feed-{self._session_id}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        # A listener may cancel its own subscription from the poller thread.
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._last_event_id = self._feed.poll_once(self._session_id, self._last_event_id)
            except TransientError:
                logger.warning("Presence feed poll failed for session %s", self._session_id)
            except Exception:
                logger.exception("Unexpected error polling presence for session %s", self._session_id)
            self._stop.wait(self._interval)
