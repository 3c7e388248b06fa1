from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Dict

from flask import current_app, jsonify, request

from ..core.exceptions import AuthorizationError, NotFoundError, TransientError, ValidationError

logger = logging.getLogger(__name__)


def json_error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def api_key_required(view):
    """Reject calls without the configured X-API-Key (no-op when API_KEY is unset)."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("API_KEY")
        if expected and request.headers.get("X-API-Key") != expected:
            return json_error("Unauthorized: missing or invalid API key", 401)
        return view(*args, **kwargs)

    return wrapper


def domain_errors(view):
    """Map domain and infrastructure exceptions onto JSON error responses."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except NotFoundError as e:
            return json_error(str(e), 404)
        except AuthorizationError as e:
            return json_error(str(e), 403)
        except ValidationError as e:
            return json_error(str(e), 400)
        except TransientError:
            logger.warning("Storage unavailable during %s", request.path)
            return json_error("Attendance storage is unavailable, try again later", 503)

    return wrapper
