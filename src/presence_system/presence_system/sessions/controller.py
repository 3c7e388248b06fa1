from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import to_iso
from ..common.http import api_key_required, domain_errors, json_body
from ..core.enums import SessionMode
from ..core.exceptions import ValidationError
from ..container import Container
from ..geofence.model import Coordinates
from ..tokens.qr_payload import encode_payload, render_png
from .model import RotatingToken, Session


def _session_json(s: Session) -> dict:
    return {
        "id": s.session_id,
        "class_id": s.class_id,
        "instructor_id": s.instructor_id,
        "started_at": to_iso(s.started_at),
        "ended_at": to_iso(s.ended_at),
        "mode": s.mode.value,
        "require_geolocation": s.require_geolocation,
        "anchor": s.anchor.to_dict() if s.anchor else None,
        "radius_meters": s.radius_meters,
        "active": s.is_active,
    }


def _token_json(t: RotatingToken) -> dict:
    return {
        "session_id": t.session_id,
        "token": t.value,
        "expires_at": to_iso(t.expires_at),
        "qr_payload": encode_payload(t.session_id, t.value),
    }


def register(app: Flask, container: Container) -> None:
    @app.route("/api/sessions", methods=["POST"], endpoint="start_session")
    @api_key_required
    @domain_errors
    def start_session():
        data = json_body()
        try:
            mode = SessionMode(data.get("mode") or SessionMode.PROFESSOR_GENERATES.value)
        except ValueError:
            raise ValidationError("Unknown session mode")
        started = container.session_service.start_session(
            class_id=data.get("class_id"),
            instructor_id=data.get("instructor_id"),
            mode=mode,
            require_geolocation=bool(data.get("require_geolocation", False)),
            anchor=Coordinates.from_mapping(data.get("anchor")),
            radius_meters=data.get("radius_meters"),
        )
        return jsonify({"session": _session_json(started.session), "token": _token_json(started.token)}), 201

    @app.route("/api/sessions/<session_id>", methods=["GET"], endpoint="get_session")
    @api_key_required
    @domain_errors
    def get_session(session_id: str):
        return jsonify({"session": _session_json(container.session_service.get_session(session_id))})

    @app.route("/api/sessions/<session_id>/end", methods=["POST"], endpoint="end_session")
    @api_key_required
    @domain_errors
    def end_session(session_id: str):
        data = json_body()
        session = container.session_service.end_session(session_id, instructor_id=data.get("instructor_id"))
        return jsonify({"session": _session_json(session)})

    @app.route("/api/sessions/<session_id>/token", methods=["GET"], endpoint="current_token")
    @api_key_required
    @domain_errors
    def current_token(session_id: str):
        return jsonify({"token": _token_json(container.token_authority.current(session_id))})

    @app.route("/api/sessions/<session_id>/token/refresh", methods=["POST"], endpoint="refresh_token")
    @api_key_required
    @domain_errors
    def refresh_token(session_id: str):
        return jsonify({"token": _token_json(container.token_authority.refresh(session_id))})

    @app.route("/api/sessions/<session_id>/qr.png", methods=["GET"], endpoint="session_qr")
    @api_key_required
    @domain_errors
    def session_qr(session_id: str):
        token = container.token_authority.current(session_id)
        png = render_png(encode_payload(token.session_id, token.value))
        return app.response_class(
            png,
            mimetype="image/png",
            headers={"Cache-Control": "no-store", "X-Token-Expires-At": to_iso(token.expires_at)},
        )

    @app.route("/api/sessions/<session_id>/candidates", methods=["GET"], endpoint="manual_candidates")
    @api_key_required
    @domain_errors
    def manual_candidates(session_id: str):
        rows = container.session_service.manual_candidates(session_id, search=request.args.get("q", ""))
        return jsonify(
            {
                "candidates": [
                    {
                        "subject_id": c.subject_id,
                        "full_name": c.full_name,
                        "registration_number": c.registration_number,
                        "marked": c.marked,
                    }
                    for c in rows
                ]
            }
        )
