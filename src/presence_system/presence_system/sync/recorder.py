from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import TransientError
from ..outbox.model import OutboxEntry
from ..outbox.outbox import OfflineOutbox
from ..presence.model import AdmissionResult, PresenceClaim
from .client import LedgerClient
from .connectivity import ConnectivitySignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    """What the device tells the user right after a scan or mark."""

    offline: bool
    result: Optional[AdmissionResult] = None
    entry: Optional[OutboxEntry] = None

    @property
    def message(self) -> str:
        if self.offline:
            return "Attendance saved offline. It will sync when you are back online."
        if self.result and self.result.admitted:
            return "Attendance recorded."
        return "Attendance was not recorded."


class PresenceRecorder:
    """Device-side entry point: admit online, otherwise queue in the outbox."""

    def __init__(self, client: LedgerClient, outbox: OfflineOutbox, connectivity: ConnectivitySignal):
        self._client = client
        self._outbox = outbox
        self._connectivity = connectivity

    def record(self, claim: PresenceClaim) -> RecordResult:
        if not self._connectivity.is_online():
            return RecordResult(offline=True, entry=self._outbox.enqueue(claim))

        try:
            result = self._client.admit(claim)
        except TransientError as e:
            logger.info("Ledger unreachable (%s); queueing claim for session %s", e, claim.session_id)
            return RecordResult(offline=True, entry=self._outbox.enqueue(claim))
        return RecordResult(offline=False, result=result)
