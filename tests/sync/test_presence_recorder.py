from __future__ import annotations

from src.presence_system.presence_system.core.enums import PresenceMethod
from src.presence_system.presence_system.core.exceptions import PersistenceUnavailableError
from src.presence_system.presence_system.outbox.outbox import OfflineOutbox
from src.presence_system.presence_system.outbox.store import MemoryStore
from src.presence_system.presence_system.presence.model import AdmissionResult, PresenceClaim
from src.presence_system.presence_system.sync.connectivity import ManualConnectivity
from src.presence_system.presence_system.sync.recorder import PresenceRecorder
from tests.fakes import T0, event


class StubClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def admit(self, claim):
        self.calls += 1
        if self.error:
            raise self.error
        return AdmissionResult.accepted(event(1, claim.subject_id))


def scan():
    return PresenceClaim(
        session_id="s-1",
        subject_id="u-1",
        method=PresenceMethod.TOKEN_SCAN,
        client_marked_at=T0,
        token="tok",
    )


def test_online_claim_goes_straight_to_ledger():
    outbox = OfflineOutbox(MemoryStore())
    result = PresenceRecorder(StubClient(), outbox, ManualConnectivity(online=True)).record(scan())

    assert result.offline is False
    assert result.result.admitted
    assert result.message == "Attendance recorded."
    assert len(outbox) == 0


def test_offline_claim_is_queued_without_calling_ledger():
    outbox = OfflineOutbox(MemoryStore())
    client = StubClient()
    result = PresenceRecorder(client, outbox, ManualConnectivity(online=False)).record(scan())

    assert result.offline is True
    assert client.calls == 0
    assert "saved offline" in result.message
    [entry] = outbox.entries()
    assert entry.claim.via_outbox is True
    assert entry.claim.token == "tok"


def test_transient_failure_while_online_is_queued():
    outbox = OfflineOutbox(MemoryStore())
    client = StubClient(PersistenceUnavailableError("db down"))
    result = PresenceRecorder(client, outbox, ManualConnectivity(online=True)).record(scan())

    assert result.offline is True
    assert len(outbox) == 1
