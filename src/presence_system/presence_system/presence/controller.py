from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_datetime, utc_now
from ..common.http import api_key_required, domain_errors, json_body
from ..common.validators import require_non_empty
from ..container import Container
from ..core.enums import PresenceMethod
from ..core.exceptions import ValidationError
from ..geofence.model import Coordinates
from ..tokens.qr_payload import decode_payload
from .model import PresenceClaim


def _claim_from_request(session_id: str, data: dict) -> PresenceClaim:
    try:
        method = PresenceMethod(data.get("method") or PresenceMethod.TOKEN_SCAN.value)
    except ValueError:
        raise ValidationError("Unknown presence method")

    token = data.get("token")
    if data.get("qr_payload"):
        payload = decode_payload(data["qr_payload"])
        if payload is None:
            raise ValidationError("Unreadable QR code")
        if payload.session_id != session_id:
            raise ValidationError("QR code belongs to another session")
        token = payload.token

    try:
        marked_at = parse_iso_datetime(data.get("client_marked_at")) or utc_now()
    except ValueError:
        raise ValidationError("client_marked_at is not an ISO-8601 timestamp")

    return PresenceClaim(
        session_id=session_id,
        subject_id=require_non_empty(data.get("subject_id"), "subject_id"),
        method=method,
        client_marked_at=marked_at,
        coordinates=Coordinates.from_mapping(data.get("coordinates")),
        token=token,
        via_outbox=bool(data.get("via_outbox", False)),
    )


def register(app: Flask, container: Container) -> None:
    @app.route("/api/sessions/<session_id>/presence", methods=["POST"], endpoint="admit_presence")
    @api_key_required
    @domain_errors
    def admit_presence(session_id: str):
        """Admit a claim. Rejections are 200 responses with status=rejected."""
        claim = _claim_from_request(session_id, json_body())
        result = container.ledger.admit(claim)
        return jsonify(result.to_dict()), 200

    @app.route("/api/sessions/<session_id>/presence", methods=["GET"], endpoint="session_presence")
    @api_key_required
    @domain_errors
    def session_presence(session_id: str):
        entries = container.live_roster.snapshot(session_id)
        return jsonify({"session_id": session_id, "count": len(entries), "records": [e.to_dict() for e in entries]})

    @app.route("/api/subjects/<subject_id>/presence", methods=["GET"], endpoint="subject_presence")
    @api_key_required
    @domain_errors
    def subject_presence(subject_id: str):
        events = container.ledger.get_for_subject(subject_id, class_id=request.args.get("class_id") or None)
        return jsonify({"subject_id": subject_id, "records": [e.to_dict() for e in events]})
