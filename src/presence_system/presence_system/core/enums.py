from __future__ import annotations

from enum import Enum


class SessionMode(str, Enum):
    """Who displays the rotating code during a session."""

    PROFESSOR_GENERATES = "professor_generates"
    STUDENT_PRESENTS = "student_presents"


class PresenceMethod(str, Enum):
    """How a presence claim was produced on the device."""

    TOKEN_SCAN = "qr_scan"
    MANUAL = "manual"


class AdmissionStatus(str, Enum):
    PENDING = "pending"
    ADMITTED = "admitted"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    """Expected, terminal business outcomes of an admission attempt."""

    INVALID_TOKEN = "invalid-token"
    EXPIRED_TOKEN = "expired-token"
    OUT_OF_RANGE = "out-of-range"
    SESSION_CLOSED = "session-closed"


class TokenCheckReason(str, Enum):
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    NO_ACTIVE_SESSION = "no-active-session"
