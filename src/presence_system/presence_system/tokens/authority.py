from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..common.datetime_utils import Clock, utc_now
from ..core.constants import DEFAULT_TOKEN_WINDOW_SECONDS
from ..core.enums import TokenCheckReason
from ..core.exceptions import NotFoundError, ValidationError
from ..sessions.model import RotatingToken
from ..sessions.repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    reason: Optional[TokenCheckReason] = None


class TokenAuthority:
    """Owns the rotating-token lifecycle of live sessions.

    Tokens are stored on the session row. Replacement is a compare-and-set so
    that callers racing to rotate the same expired token produce one winner;
    the losers simply return whatever token is current afterwards.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        *,
        clock: Clock = utc_now,
        window_seconds: int = DEFAULT_TOKEN_WINDOW_SECONDS,
    ):
        if int(window_seconds) <= 0:
            raise ValidationError("Token window must be positive")
        self._sessions = sessions
        self._clock = clock
        self._window = timedelta(seconds=int(window_seconds))

    @property
    def window(self) -> timedelta:
        return self._window

    def issue(self, session_id: str) -> RotatingToken:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if not session.is_active:
            raise ValidationError("Session is closed")

        previous = self._sessions.get_token(session_id)
        return self._rotate(session_id, previous)

    refresh = issue

    def current(self, session_id: str) -> RotatingToken:
        """Live token for display, rotating lazily once the previous one expired."""
        token = self._sessions.get_token(session_id)
        if token and token.is_live(self._clock()):
            return token
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if not session.is_active:
            raise ValidationError("Session is closed")
        return self._rotate(session_id, token)

    def validate(self, session_id: str, presented: Optional[str]) -> TokenCheck:
        token = self._sessions.get_token(session_id)
        if token is None:
            return TokenCheck(valid=False, reason=TokenCheckReason.NO_ACTIVE_SESSION)
        if not presented or not secrets.compare_digest(str(presented).encode("utf-8"), token.value.encode("utf-8")):
            return TokenCheck(valid=False, reason=TokenCheckReason.MISMATCH)
        if not token.is_live(self._clock()):
            return TokenCheck(valid=False, reason=TokenCheckReason.EXPIRED)
        return TokenCheck(valid=True)

    def revoke(self, session_id: str) -> None:
        self._sessions.clear_token(session_id)

    def _rotate(self, session_id: str, previous: Optional[RotatingToken]) -> RotatingToken:
        candidate = RotatingToken(
            session_id=session_id,
            value=secrets.token_urlsafe(24),
            expires_at=self._clock() + self._window,
        )
        expected = previous.value if previous else None
        if self._sessions.replace_token(candidate, expected_value=expected):
            logger.debug("Issued token for session %s (expires %s)", session_id, candidate.expires_at)
            return candidate

        latest = self._sessions.get_token(session_id)
        if latest is None:
            raise ValidationError("Session is closed")
        logger.debug("Lost rotation race for session %s; using latest token", session_id)
        return latest
