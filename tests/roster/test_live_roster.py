from __future__ import annotations

from src.presence_system.presence_system.core.enums import PresenceMethod
from src.presence_system.presence_system.presence.ledger import PresenceLedger
from src.presence_system.presence_system.presence.model import PresenceClaim
from src.presence_system.presence_system.realtime.feed import InMemoryChangeFeed
from src.presence_system.presence_system.roster.live_roster import LiveRoster
from src.presence_system.presence_system.tokens.authority import TokenAuthority
from tests.fakes import (
    T0,
    FakeClock,
    InMemoryIdentities,
    InMemoryPresence,
    InMemorySessions,
    event,
    make_session,
    profile,
)


def build(identities=None):
    clock = FakeClock()
    sessions = InMemorySessions()
    make_session(sessions)
    tokens = TokenAuthority(sessions, clock=clock)
    presence = InMemoryPresence()
    feed = InMemoryChangeFeed()
    ledger = PresenceLedger(presence, sessions, tokens, feed, clock=clock)
    return LiveRoster(ledger, feed, identities), ledger, feed, presence


def manual(subject_id):
    return PresenceClaim(session_id="s-1", subject_id=subject_id, method=PresenceMethod.MANUAL, client_marked_at=T0)


def test_snapshot_then_live_admissions_in_order():
    roster, ledger, _, _ = build()
    ledger.admit(manual("u-1"))

    seen = []
    sub = roster.subscribe("s-1", on_admit=seen.append)
    ledger.admit(manual("u-2"))
    ledger.admit(manual("u-2"))

    assert [e.event.subject_id for e in sub.entries] == ["u-1", "u-2"]
    assert [e.event.subject_id for e in seen] == ["u-1", "u-2"]
    sub.unsubscribe()


def test_event_published_during_snapshot_appears_once():
    roster, ledger, feed, presence = build()
    presence.seed(event(1, "u-1"))
    presence.seed(event(2, "u-2"))

    original = ledger.get_for_session

    def racing_snapshot(session_id):
        rows = original(session_id)
        # Arrives through the feed while the snapshot is in flight, and is also in it.
        feed.publish(event(2, "u-2"))
        feed.publish(event(3, "u-3"))
        return rows

    ledger.get_for_session = racing_snapshot
    sub = roster.subscribe("s-1")

    assert [e.event.event_id for e in sub.entries] == [1, 2, 3]
    sub.unsubscribe()


def test_out_of_order_delivery_is_sorted_by_event_id():
    roster, _, feed, _ = build()
    sub = roster.subscribe("s-1")
    feed.publish(event(5, "u-5"))
    feed.publish(event(4, "u-4"))
    assert [e.event.event_id for e in sub.entries] == [4, 5]
    sub.unsubscribe()


def test_other_sessions_are_filtered_out():
    roster, _, feed, _ = build()
    sub = roster.subscribe("s-1")
    feed.publish(event(1, "u-1", session_id="s-2"))
    assert sub.entries == []
    sub.unsubscribe()


def test_unsubscribe_stops_updates_and_releases_listener():
    roster, ledger, feed, _ = build()
    with roster.subscribe("s-1") as sub:
        assert sub.active
        assert feed.subscriber_count("s-1") == 1

    assert not sub.active
    assert feed.subscriber_count("s-1") == 0
    ledger.admit(manual("u-1"))
    assert sub.entries == []


def test_entries_are_enriched_with_profiles():
    identities = InMemoryIdentities([profile("u-1", "Nguyen Van A", "SV001")])
    roster, ledger, _, _ = build(identities)
    ledger.admit(manual("u-1"))
    ledger.admit(manual("u-404"))

    sub = roster.subscribe("s-1")
    known, unknown = sub.entries
    assert known.to_dict()["full_name"] == "Nguyen Van A"
    assert known.to_dict()["registration_number"] == "SV001"
    assert unknown.profile.full_name == "u-404"
    sub.unsubscribe()


def test_failing_callback_does_not_break_the_roster():
    roster, ledger, _, _ = build()

    def explode(_):
        raise RuntimeError("ui gone")

    sub = roster.subscribe("s-1", on_admit=explode)
    result = ledger.admit(manual("u-1"))

    assert result.admitted
    assert len(sub.entries) == 1
    sub.unsubscribe()


class NoSubscriptions(InMemoryChangeFeed):
    def subscribe(self, session_id, listener):
        raise AssertionError("one-off reads must not subscribe to the feed")


def test_snapshot_reads_without_subscribing():
    identities = InMemoryIdentities([profile("u-1", "Nguyen Van A", "SV001")])
    _, ledger, _, _ = build()
    ledger.admit(manual("u-1"))
    ledger.admit(manual("u-404"))
    roster = LiveRoster(ledger, NoSubscriptions(), identities)

    known, unknown = roster.snapshot("s-1")

    assert known.to_dict()["full_name"] == "Nguyen Van A"
    assert unknown.profile.full_name == "u-404"


class BrokenIdentities:
    def get_profile(self, subject_id):
        raise RuntimeError("directory offline")


def test_snapshot_survives_identity_lookup_failure():
    roster, ledger, feed, _ = build(BrokenIdentities())
    ledger.admit(manual("u-1"))

    (entry,) = roster.snapshot("s-1")

    assert entry.profile.full_name == "u-1"
    assert feed.subscriber_count("s-1") == 0
