from __future__ import annotations

import itertools
import json

from src.presence_system.presence_system.core.enums import AdmissionStatus, PresenceMethod, RejectionReason
from src.presence_system.presence_system.geofence.model import Coordinates
from src.presence_system.presence_system.outbox.outbox import OfflineOutbox
from src.presence_system.presence_system.outbox.store import JsonFileStore, MemoryStore
from src.presence_system.presence_system.presence.model import AdmissionResult, PresenceClaim
from tests.fakes import T0, FakeClock, event


def make_claim(subject_id="u-1", token="tok") -> PresenceClaim:
    return PresenceClaim(
        session_id="s-1",
        subject_id=subject_id,
        method=PresenceMethod.TOKEN_SCAN,
        client_marked_at=T0,
        coordinates=Coordinates(latitude=10.762622, longitude=106.660172),
        token=token,
    )


def make_outbox(store, clock=None):
    ids = itertools.count(1)
    return OfflineOutbox(store, clock=clock or FakeClock(), id_factory=lambda: f"local-{next(ids)}")


def test_entries_survive_restart(tmp_path):
    path = tmp_path / "outbox.json"
    clock = FakeClock()
    outbox = make_outbox(JsonFileStore(path), clock)
    outbox.enqueue(make_claim("u-1"))
    clock.advance(5)
    outbox.enqueue(make_claim("u-2"))

    reopened = OfflineOutbox(JsonFileStore(path))
    entries = reopened.entries()

    assert [e.claim.subject_id for e in entries] == ["u-1", "u-2"]
    assert entries[0].claim.coordinates == Coordinates(latitude=10.762622, longitude=106.660172)
    assert entries[0].claim.client_marked_at == T0
    assert all(e.claim.via_outbox for e in entries)


def test_admitted_entry_is_removed_without_outcome(tmp_path):
    outbox = make_outbox(JsonFileStore(tmp_path / "outbox.json"))
    entry = outbox.enqueue(make_claim())

    assert outbox.resolve(entry, AdmissionResult.accepted(event(1, "u-1"))) is None
    assert len(outbox) == 0
    assert outbox.outcomes() == []


def test_rejection_is_removed_and_recorded_in_one_write(tmp_path):
    path = tmp_path / "outbox.json"
    outbox = make_outbox(JsonFileStore(path))
    keep = outbox.enqueue(make_claim("u-1"))
    drop = outbox.enqueue(make_claim("u-2"))

    outcome = outbox.resolve(drop, AdmissionResult.rejected(RejectionReason.OUT_OF_RANGE, distance_meters=212.4))

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert [e["local_id"] for e in doc["entries"]] == [keep.local_id]
    assert [o["local_id"] for o in doc["outcomes"]] == [drop.local_id]
    assert outcome.status == AdmissionStatus.REJECTED
    assert "212 m" in outcome.message


def test_outcomes_persist_until_acknowledged(tmp_path):
    path = tmp_path / "outbox.json"
    outbox = make_outbox(JsonFileStore(path))
    entry = outbox.enqueue(make_claim())
    outbox.resolve(entry, AdmissionResult.rejected(RejectionReason.EXPIRED_TOKEN))

    reopened = OfflineOutbox(JsonFileStore(path))
    [outcome] = reopened.outcomes()
    assert outcome.reason == RejectionReason.EXPIRED_TOKEN
    assert "expired" in outcome.message

    reopened.acknowledge_outcomes()
    assert OfflineOutbox(JsonFileStore(path)).outcomes() == []


def test_resolving_unknown_entry_leaves_queue_alone():
    store = MemoryStore()
    outbox = make_outbox(store)
    entry = outbox.enqueue(make_claim())
    outbox.resolve(entry, AdmissionResult.accepted(None))

    assert store.resolve(entry.local_id, None) is False
    assert len(outbox) == 0


def test_corrupt_file_is_set_aside(tmp_path):
    path = tmp_path / "outbox.json"
    path.write_text("{not json", encoding="utf-8")

    outbox = make_outbox(JsonFileStore(path))
    assert outbox.entries() == []
    assert (tmp_path / "outbox.json.corrupt").exists()

    outbox.enqueue(make_claim())
    assert len(outbox) == 1


def test_no_temp_files_left_behind(tmp_path):
    outbox = make_outbox(JsonFileStore(tmp_path / "outbox.json"))
    for i in range(5):
        outbox.enqueue(make_claim(f"u-{i}"))
    assert [p.name for p in tmp_path.iterdir()] == ["outbox.json"]


def test_entries_are_fifo_by_enqueue_time():
    clock = FakeClock()
    store = MemoryStore()
    outbox = make_outbox(store, clock)
    for subject in ("u-3", "u-1", "u-2"):
        outbox.enqueue(make_claim(subject))
        clock.advance(1)
    assert [e.claim.subject_id for e in outbox.entries()] == ["u-3", "u-1", "u-2"]
