from __future__ import annotations

import threading

from src.presence_system.presence_system.realtime.feed import InMemoryChangeFeed, PollingChangeFeed
from tests.fakes import InMemoryPresence, event


def test_in_memory_feed_filters_by_session():
    feed = InMemoryChangeFeed()
    got = []
    feed.subscribe("s-1", got.append)

    feed.publish(event(1, "u-1", session_id="s-1"))
    feed.publish(event(2, "u-2", session_id="s-2"))

    assert [e.event_id for e in got] == [1]


def test_listener_failure_does_not_stop_delivery():
    feed = InMemoryChangeFeed()
    got = []

    def broken(_):
        raise RuntimeError("boom")

    feed.subscribe("s-1", broken)
    feed.subscribe("s-1", got.append)
    feed.publish(event(1, "u-1"))

    assert len(got) == 1


def test_cancel_is_idempotent():
    feed = InMemoryChangeFeed()
    sub = feed.subscribe("s-1", lambda e: None)
    sub.cancel()
    sub.cancel()
    assert feed.subscriber_count("s-1") == 0


def test_polling_feed_delivers_rows_past_cursor():
    presence = InMemoryPresence()
    feed = PollingChangeFeed(presence, interval_seconds=3600)
    got = []
    sub = feed.subscribe("s-1", got.append)

    presence.seed(event(1, "u-1"))
    presence.seed(event(2, "u-2"))
    cursor = feed.poll_once("s-1", 0)
    presence.seed(event(3, "u-3"))
    cursor = feed.poll_once("s-1", cursor)

    assert cursor == 3
    # The background poller may also have delivered some rows; consumers dedupe by event id.
    assert {e.event_id for e in got} == {1, 2, 3}
    sub.cancel()
    feed.close()


def test_polling_feed_publish_is_noop():
    presence = InMemoryPresence()
    feed = PollingChangeFeed(presence, interval_seconds=3600)
    got = []
    sub = feed.subscribe("s-1", got.append)
    feed.publish(event(9, "u-9"))
    assert 9 not in [e.event_id for e in got]
    sub.cancel()
    feed.close()


def test_slow_listener_does_not_block_other_sessions():
    feed = InMemoryChangeFeed()
    entered = threading.Event()
    release = threading.Event()
    got = []

    def slow(_):
        entered.set()
        release.wait(5)

    feed.subscribe("s-1", slow)
    feed.subscribe("s-2", got.append)
    worker = threading.Thread(target=feed.publish, args=(event(1, "u-1", session_id="s-1"),))
    worker.start()
    try:
        assert entered.wait(5)
        feed.publish(event(2, "u-2", session_id="s-2"))
        assert [e.event_id for e in got] == [2]
        assert feed.subscriber_count("s-1") == 1
    finally:
        release.set()
        worker.join(5)


def test_listener_may_cancel_itself_during_delivery():
    feed = InMemoryChangeFeed()
    got = []
    subs = {}

    def once(e):
        got.append(e.event_id)
        subs["once"].cancel()

    subs["once"] = feed.subscribe("s-1", once)
    feed.publish(event(1, "u-1"))
    feed.publish(event(2, "u-2"))

    assert got == [1]
    assert feed.subscriber_count("s-1") == 0


class FlakyPresence(InMemoryPresence):
    """Fails the first poll with an error the feed does not anticipate."""

    def __init__(self):
        super().__init__()
        self.polls = 0

    def list_for_session_after(self, session_id, after_event_id):
        self.polls += 1
        if self.polls == 1:
            raise RuntimeError("cursor closed")
        return super().list_for_session_after(session_id, after_event_id)


def test_poller_keeps_running_after_unexpected_error():
    presence = FlakyPresence()
    presence.seed(event(1, "u-1"))
    feed = PollingChangeFeed(presence, interval_seconds=0.01)
    delivered = threading.Event()
    sub = feed.subscribe("s-1", lambda e: delivered.set())
    try:
        assert delivered.wait(5)
        assert presence.polls >= 2
    finally:
        sub.cancel()
        feed.close(timeout=1)


def test_last_cancel_stops_poller_and_resubscribe_restarts_it():
    presence = InMemoryPresence()
    feed = PollingChangeFeed(presence, interval_seconds=0.01)

    first = feed.subscribe("s-1", lambda e: None)
    second = feed.subscribe("s-1", lambda e: None)
    first.cancel()
    assert feed.watched_sessions() == ["s-1"]
    second.cancel()
    assert feed.watched_sessions() == []

    delivered = threading.Event()
    again = feed.subscribe("s-1", lambda e: delivered.set())
    presence.seed(event(1, "u-1"))
    try:
        assert feed.watched_sessions() == ["s-1"]
        assert delivered.wait(5)
    finally:
        again.cancel()
        feed.close(timeout=1)
