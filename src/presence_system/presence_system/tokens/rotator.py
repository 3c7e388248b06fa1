from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..common.datetime_utils import Clock, utc_now
from ..core.exceptions import DomainError, TransientError
from ..sessions.model import RotatingToken
from .authority import TokenAuthority

logger = logging.getLogger(__name__)

OnRotate = Callable[[RotatingToken], None]


class TokenRotator:
    """Issuing-side timer that keeps a session's displayed token fresh.

    Wakes up when the current token expires and asks the authority for the
    live one (which rotates lazily). Stops by itself once the session closes.
    """

    def __init__(
        self,
        authority: TokenAuthority,
        session_id: str,
        *,
        on_rotate: Optional[OnRotate] = None,
        clock: Clock = utc_now,
        retry_seconds: float = 5.0,
    ):
        self._authority = authority
        self._session_id = session_id
        self._on_rotate = on_rotate
        self._clock = clock
        self._retry_seconds = float(retry_seconds)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_value: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"token-rotator-{self._session_id}", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def tick(self) -> Optional[RotatingToken]:
        """One rotation check; returns None when the session can no longer rotate."""
        try:
            token = self._authority.current(self._session_id)
        except DomainError as e:
            logger.info("Stopping rotation for session %s: %s", self._session_id, e)
            return None

        if token.value != self._last_value:
            self._last_value = token.value
            if self._on_rotate:
                self._on_rotate(token)
        return token

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                token = self.tick()
            except TransientError:
                logger.warning("Token rotation for session %s failed; retrying", self._session_id)
                self._stop.wait(self._retry_seconds)
                continue

            if token is None:
                return
            remaining = (token.expires_at - self._clock()).total_seconds()
            self._stop.wait(max(remaining, 0.05))
