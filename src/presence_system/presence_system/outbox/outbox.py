from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import Clock, utc_now
from ..presence.model import AdmissionResult, PresenceClaim
from .model import OutboxEntry, SyncOutcome
from .store import LocalStore

logger = logging.getLogger(__name__)


class OfflineOutbox:
    """Durable FIFO of claims captured while the ledger was unreachable."""

    def __init__(
        self,
        store: LocalStore,
        *,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def enqueue(self, claim: PresenceClaim) -> OutboxEntry:
        entry = OutboxEntry(local_id=self._id_factory(), claim=claim.replayed(), enqueued_at=self._clock())
        self._store.append(entry)
        logger.info(
            "Queued offline claim %s for session %s", entry.local_id, claim.session_id
        )
        return entry

    def entries(self) -> Sequence[OutboxEntry]:
        return sorted(self._store.entries(), key=lambda e: e.enqueued_at)

    def __len__(self) -> int:
        return len(self._store.entries())

    def resolve(self, entry: OutboxEntry, result: AdmissionResult) -> Optional[SyncOutcome]:
        """Drop an entry after a terminal answer; rejections are kept for reporting."""
        outcome = None
        if not result.admitted:
            outcome = SyncOutcome(
                local_id=entry.local_id,
                claim=entry.claim,
                status=result.status,
                reason=result.reason,
                distance_meters=result.distance_meters,
                resolved_at=self._clock(),
            )
        self._store.resolve(entry.local_id, outcome)
        return outcome

    def outcomes(self) -> Sequence[SyncOutcome]:
        return self._store.outcomes()

    def acknowledge_outcomes(self) -> None:
        self._store.clear_outcomes()
