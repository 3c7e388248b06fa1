from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..core.constants import DEFAULT_DRAIN_INTERVAL_SECONDS
from ..core.enums import AdmissionStatus
from ..core.exceptions import DomainError, TransientError
from ..outbox.model import SyncOutcome
from ..outbox.outbox import OfflineOutbox
from ..presence.model import AdmissionResult
from .client import LedgerClient
from .connectivity import ConnectivitySignal

logger = logging.getLogger(__name__)


@dataclass
class DrainReport:
    admitted: int = 0
    rejected: List[SyncOutcome] = field(default_factory=list)
    retained: int = 0
    skipped: bool = False

    @property
    def success(self) -> bool:
        return not self.skipped and self.retained == 0 and not self.rejected


class SyncCoordinator:
    """Replays the outbox against the ledger.

    Drains are triggered by the connectivity edge, a periodic timer, or a
    manual call. Only one drain runs at a time; a request arriving while one
    is active returns a skipped report.
    """

    def __init__(
        self,
        outbox: OfflineOutbox,
        client: LedgerClient,
        connectivity: ConnectivitySignal,
        *,
        interval_seconds: float = DEFAULT_DRAIN_INTERVAL_SECONDS,
        on_report: Optional[Callable[[DrainReport], None]] = None,
    ):
        self._outbox = outbox
        self._client = client
        self._connectivity = connectivity
        self._interval = float(interval_seconds)
        self._on_report = on_report
        self._draining = threading.Lock()
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def draining(self) -> bool:
        return self._draining.locked()

    def drain(self) -> DrainReport:
        if not self._draining.acquire(blocking=False):
            logger.debug("Drain already in progress; skipping")
            return DrainReport(skipped=True)
        try:
            report = self._drain_locked()
        finally:
            self._draining.release()

        if report.admitted or report.rejected or report.retained:
            logger.info(
                "Outbox drain finished: admitted=%s rejected=%s retained=%s",
                report.admitted, len(report.rejected), report.retained,
            )
        if self._on_report:
            try:
                self._on_report(report)
            except Exception:
                logger.exception("Drain report callback failed")
        return report

    def start(self) -> None:
        """Subscribe to connectivity and start the periodic drain timer."""
        if self._timer is not None:
            return
        self._stop.clear()
        self._unsubscribe = self._connectivity.on_reachable(self._on_reachable)
        self._timer = threading.Thread(target=self._run_timer, name="outbox-sync", daemon=True)
        self._timer.start()
        if self._connectivity.is_online():
            self._spawn_drain()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._timer is not None:
            self._timer.join(timeout)
            self._timer = None

    def _drain_locked(self) -> DrainReport:
        report = DrainReport()
        # One entry at a time, oldest first; each resolve is a single atomic store write.
        for entry in self._outbox.entries():
            try:
                result = self._client.admit(entry.claim)
            except TransientError as e:
                logger.info("Ledger unavailable for %s (%s); keeping it queued", entry.local_id, e)
                report.retained += 1
                continue
            except DomainError as e:
                logger.warning("Ledger refused %s as malformed: %s", entry.local_id, e)
                result = AdmissionResult(status=AdmissionStatus.REJECTED)
            except Exception:
                logger.exception("Unexpected failure syncing %s; keeping it queued", entry.local_id)
                report.retained += 1
                continue

            outcome = self._outbox.resolve(entry, result)
            if outcome is None:
                report.admitted += 1
            else:
                report.rejected.append(outcome)
        return report

    def _on_reachable(self) -> None:
        logger.info("Connectivity restored; draining outbox")
        self._spawn_drain()

    def _spawn_drain(self) -> None:
        threading.Thread(target=self._background_drain, name="outbox-drain", daemon=True).start()

    def _background_drain(self) -> None:
        try:
            self.drain()
        except Exception:
            logger.exception("Outbox drain failed; entries stay queued for the next attempt")

    def _run_timer(self) -> None:
        while not self._stop.wait(self._interval):
            if not self._connectivity.is_online():
                continue
            self._background_drain()
