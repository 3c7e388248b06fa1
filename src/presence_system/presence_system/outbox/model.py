from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_iso_datetime, to_iso
from ..core.enums import AdmissionStatus, RejectionReason
from ..presence.model import PresenceClaim


@dataclass(frozen=True)
class OutboxEntry:
    """A claim waiting on the device for a terminal answer from the ledger."""

    local_id: str
    claim: PresenceClaim
    enqueued_at: datetime

    def to_dict(self) -> dict:
        return {
            "local_id": self.local_id,
            "claim": self.claim.to_dict(),
            "enqueued_at": to_iso(self.enqueued_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OutboxEntry":
        return cls(
            local_id=str(data["local_id"]),
            claim=PresenceClaim.from_dict(data["claim"]),
            enqueued_at=parse_iso_datetime(data["enqueued_at"]),
        )


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal result of one outbox entry, kept for user-visible reporting."""

    local_id: str
    claim: PresenceClaim
    status: AdmissionStatus
    resolved_at: datetime
    reason: Optional[RejectionReason] = None
    distance_meters: Optional[float] = None

    @property
    def message(self) -> str:
        if self.status == AdmissionStatus.ADMITTED:
            return "Attendance synced."
        if self.reason == RejectionReason.EXPIRED_TOKEN:
            return "The code expired before your device came back online. Ask for a fresh code."
        if self.reason == RejectionReason.INVALID_TOKEN:
            return "The scanned code is no longer valid. Ask for a fresh code."
        if self.reason == RejectionReason.OUT_OF_RANGE:
            if self.distance_meters is not None:
                return f"You were too far from the classroom ({round(self.distance_meters)} m)."
            return "Your location could not be confirmed."
        if self.reason == RejectionReason.SESSION_CLOSED:
            return "The session was closed before your attendance synced."
        return "Attendance was not recorded."

    def to_dict(self) -> dict:
        return {
            "local_id": self.local_id,
            "claim": self.claim.to_dict(),
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "distance_meters": self.distance_meters,
            "resolved_at": to_iso(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncOutcome":
        reason = data.get("reason")
        return cls(
            local_id=str(data["local_id"]),
            claim=PresenceClaim.from_dict(data["claim"]),
            status=AdmissionStatus(data["status"]),
            reason=RejectionReason(reason) if reason else None,
            distance_meters=data.get("distance_meters"),
            resolved_at=parse_iso_datetime(data["resolved_at"]),
        )
