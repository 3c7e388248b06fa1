from __future__ import annotations

import itertools
import logging
import socket
import threading
from typing import Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class ConnectivitySignal(Protocol):
    def is_online(self) -> bool:
        raise NotImplementedError

    def on_reachable(self, callback: Callable[[], None]) -> Unsubscribe:
        """Register for the offline -> online edge; returns an unsubscribe function."""

        raise NotImplementedError


class _EdgeSignal:
    def __init__(self, online: bool):
        self._online = bool(online)
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._callbacks: Dict[int, Callable[[], None]] = {}

    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def on_reachable(self, callback: Callable[[], None]) -> Unsubscribe:
        with self._lock:
            key = next(self._ids)
            self._callbacks[key] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._callbacks.pop(key, None)

        return unsubscribe

    def _set(self, online: bool) -> None:
        with self._lock:
            became_reachable = online and not self._online
            self._online = bool(online)
            callbacks = list(self._callbacks.values()) if became_reachable else []
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.exception("Connectivity callback failed")


class ManualConnectivity(_EdgeSignal):
    """Connectivity driven by the host application (or tests)."""

    def __init__(self, online: bool = True):
        super().__init__(online)

    def set_online(self, online: bool) -> None:
        self._set(online)


class SocketProbeConnectivity(_EdgeSignal):
    """Treats the ledger host as reachable when a TCP connect succeeds."""

    def __init__(self, host: str, port: int, *, interval_seconds: float = 10.0, timeout_seconds: float = 3.0):
        super().__init__(online=False)
        self._host = host
        self._port = int(port)
        self._interval = float(interval_seconds)
        self._timeout = float(timeout_seconds)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def probe(self) -> bool:
        try:
            with socket.create_connection((self._host, self._port), timeout=self._timeout):
                online = True
        except OSError:
            online = False
        self._set(online)
        return online

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="connectivity-probe", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(self._timeout + self._interval)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            self.probe()
            self._stop.wait(self._interval)
