from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_iso_datetime, to_iso
from ..core.enums import AdmissionStatus, PresenceMethod, RejectionReason
from ..geofence.model import Coordinates


@dataclass(frozen=True)
class PresenceClaim:
    """What a device submits: "this subject is present in this session"."""

    session_id: str
    subject_id: str
    method: PresenceMethod
    client_marked_at: datetime
    coordinates: Optional[Coordinates] = None
    token: Optional[str] = None
    via_outbox: bool = False

    def replayed(self) -> "PresenceClaim":
        return replace(self, via_outbox=True)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "subject_id": self.subject_id,
            "method": self.method.value,
            "client_marked_at": to_iso(self.client_marked_at),
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "token": self.token,
            "via_outbox": self.via_outbox,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PresenceClaim":
        return cls(
            session_id=str(data["session_id"]),
            subject_id=str(data["subject_id"]),
            method=PresenceMethod(data["method"]),
            client_marked_at=parse_iso_datetime(data["client_marked_at"]),
            coordinates=Coordinates.from_mapping(data.get("coordinates")),
            token=data.get("token"),
            via_outbox=bool(data.get("via_outbox", False)),
        )


@dataclass(frozen=True)
class PresenceEvent:
    """Domain entity: an admitted attendance record.

    ``event_id`` is the server-assigned sequence; it orders admissions within a
    session and identifies the event for de-duplication.
    """

    event_id: int
    session_id: str
    subject_id: str
    method: PresenceMethod
    client_marked_at: datetime
    admitted_at: datetime
    coordinates: Optional[Coordinates] = None
    status: AdmissionStatus = AdmissionStatus.ADMITTED
    synced: bool = False
    synced_at: Optional[datetime] = None
    class_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "session_id": self.session_id,
            "subject_id": self.subject_id,
            "class_id": self.class_id,
            "method": self.method.value,
            "status": self.status.value,
            "client_marked_at": to_iso(self.client_marked_at),
            "admitted_at": to_iso(self.admitted_at),
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "synced": self.synced,
            "synced_at": to_iso(self.synced_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PresenceEvent":
        return cls(
            event_id=int(data["event_id"]),
            session_id=str(data["session_id"]),
            subject_id=str(data["subject_id"]),
            class_id=data.get("class_id"),
            method=PresenceMethod(data["method"]),
            status=AdmissionStatus(data.get("status", AdmissionStatus.ADMITTED.value)),
            client_marked_at=parse_iso_datetime(data["client_marked_at"]),
            admitted_at=parse_iso_datetime(data["admitted_at"]),
            coordinates=Coordinates.from_mapping(data.get("coordinates")),
            synced=bool(data.get("synced", False)),
            synced_at=parse_iso_datetime(data.get("synced_at")),
        )


@dataclass(frozen=True)
class AdmissionResult:
    status: AdmissionStatus
    reason: Optional[RejectionReason] = None
    distance_meters: Optional[float] = None
    event: Optional[PresenceEvent] = None
    # Telemetry only: callers must treat a duplicate exactly like a fresh admission.
    duplicate: bool = False

    @property
    def admitted(self) -> bool:
        return self.status == AdmissionStatus.ADMITTED

    @classmethod
    def accepted(cls, event: Optional[PresenceEvent], *, duplicate: bool = False) -> "AdmissionResult":
        return cls(status=AdmissionStatus.ADMITTED, event=event, duplicate=duplicate)

    @classmethod
    def rejected(cls, reason: RejectionReason, *, distance_meters: Optional[float] = None) -> "AdmissionResult":
        return cls(status=AdmissionStatus.REJECTED, reason=reason, distance_meters=distance_meters)

    def to_dict(self) -> dict:
        body: dict = {"status": self.status.value}
        if self.reason:
            body["reason"] = self.reason.value
        if self.distance_meters is not None:
            body["distance_meters"] = round(self.distance_meters, 1)
        if self.event:
            body["event"] = self.event.to_dict()
        return body

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdmissionResult":
        reason = data.get("reason")
        event = data.get("event")
        return cls(
            status=AdmissionStatus(data["status"]),
            reason=RejectionReason(reason) if reason else None,
            distance_meters=data.get("distance_meters"),
            event=PresenceEvent.from_dict(event) if event else None,
        )
