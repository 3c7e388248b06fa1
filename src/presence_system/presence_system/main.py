from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .container import build_container
from .database.bootstrap import apply_schema, list_tables
from .presence.controller import register as register_presence
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv(override=False)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = Flask(__name__)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["API_KEY"] = getattr(settings, "API_KEY", None)

    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"), db_config.get("host"), db_config.get("port", 3306), db_config.get("database"),
    )

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
        apply_schema(db_config, schema_path=schema_path)
        logger.info("schema ready (tables=%s)", len(list_tables(db_config)))

    container = build_container(
        db_config=db_config,
        token_window_seconds=int(getattr(settings, "TOKEN_WINDOW_SECONDS", 60)),
        default_radius_meters=float(getattr(settings, "DEFAULT_GEOFENCE_RADIUS_METERS", 100)),
        feed_poll_seconds=getattr(settings, "FEED_POLL_SECONDS", None),
        geofence_manual_marks=bool(getattr(settings, "GEOFENCE_MANUAL_MARKS", False)),
    )
    app.extensions["presence_container"] = container

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "ok"})

    register_sessions(app, container)
    register_presence(app, container)

    return app
