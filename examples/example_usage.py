"""Example: device side of the presence flow (no Flask).

A kiosk or student device records a scanned code; when the ledger API is
unreachable the claim waits in a JSON outbox and is replayed by the sync
coordinator once the server answers again.
"""

import logging
import os
import sys
from pathlib import Path

from src.presence_system.presence_system.common.datetime_utils import utc_now
from src.presence_system.presence_system.core.constants import OUTBOX_FILE_NAME
from src.presence_system.presence_system.core.enums import PresenceMethod
from src.presence_system.presence_system.outbox.outbox import OfflineOutbox
from src.presence_system.presence_system.outbox.store import JsonFileStore
from src.presence_system.presence_system.presence.model import PresenceClaim
from src.presence_system.presence_system.sync.client import HttpLedgerClient
from src.presence_system.presence_system.sync.connectivity import SocketProbeConnectivity
from src.presence_system.presence_system.sync.coordinator import SyncCoordinator
from src.presence_system.presence_system.sync.recorder import PresenceRecorder
from src.presence_system.presence_system.tokens.qr_payload import decode_payload


def main(scanned_text: str, subject_id: str):
    logging.basicConfig(level=logging.INFO)

    server = os.getenv("LEDGER_URL", "http://127.0.0.1:5000")
    outbox = OfflineOutbox(JsonFileStore(Path.home() / ".presence" / OUTBOX_FILE_NAME))
    client = HttpLedgerClient(server, api_key=os.getenv("API_KEY") or None)
    connectivity = SocketProbeConnectivity(os.getenv("LEDGER_HOST", "127.0.0.1"), int(os.getenv("LEDGER_PORT", "5000")))
    connectivity.probe()

    payload = decode_payload(scanned_text)
    if payload is None:
        print("Unreadable QR code")
        return

    recorder = PresenceRecorder(client, outbox, connectivity)
    recorded = recorder.record(
        PresenceClaim(
            session_id=payload.session_id,
            subject_id=subject_id,
            method=PresenceMethod.TOKEN_SCAN,
            client_marked_at=utc_now(),
            token=payload.token,
        )
    )
    print(recorded.message)

    if not connectivity.is_online():
        return
    report = SyncCoordinator(outbox, client, connectivity).drain()
    for outcome in report.rejected:
        print(outcome.message)


if __name__ == "__main__":
    main(sys.argv[1], sys.argv[2])
