from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from ..core.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from ..core.exceptions import (
    LedgerRefusedError,
    NetworkUnavailableError,
    PersistenceUnavailableError,
    ValidationError,
)
from ..presence.ledger import PresenceLedger
from ..presence.model import AdmissionResult, PresenceClaim

logger = logging.getLogger(__name__)

_MALFORMED_CLAIM_STATUSES = frozenset({400, 422})


class LedgerClient(Protocol):
    """How a device reaches the ledger. Raises TransientError for retryable failures."""

    def admit(self, claim: PresenceClaim) -> AdmissionResult:
        raise NotImplementedError


class LocalLedgerClient:
    """In-process client, for kiosks running next to the ledger and for tests."""

    def __init__(self, ledger: PresenceLedger):
        self._ledger = ledger

    def admit(self, claim: PresenceClaim) -> AdmissionResult:
        return self._ledger.admit(claim)


class HttpLedgerClient:
    """Talks to the ledger's JSON API (``POST /api/sessions/<id>/presence``)."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._http = session or requests.Session()
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["X-API-Key"] = api_key

    def admit(self, claim: PresenceClaim) -> AdmissionResult:
        url = f"{self._base_url}/api/sessions/{claim.session_id}/presence"
        try:
            response = self._http.post(url, json=claim.to_dict(), headers=self._headers, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkUnavailableError(str(e)) from e

        if response.status_code >= 500:
            raise PersistenceUnavailableError(f"Ledger answered {response.status_code}")
        try:
            payload = response.json() or {}
        except ValueError as e:
            raise NetworkUnavailableError("Ledger returned a non-JSON body") from e

        message = payload.get("error") if isinstance(payload, dict) else None
        if response.status_code in _MALFORMED_CLAIM_STATUSES:
            raise ValidationError(message or f"Ledger answered {response.status_code}")
        if response.status_code != 200:
            # Auth, rate limit or a wrong URL: nothing is wrong with the claim, keep it queued.
            logger.warning("Ledger refused %s with %s; claim kept for retry", url, response.status_code)
            raise LedgerRefusedError(message or f"Ledger answered {response.status_code}")
        return AdmissionResult.from_dict(payload)
