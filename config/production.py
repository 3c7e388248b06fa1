import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "presence"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_db"),
}

API_KEY = os.getenv("API_KEY", "")

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TOKEN_WINDOW_SECONDS = int(os.getenv("TOKEN_WINDOW_SECONDS", "60"))
DEFAULT_GEOFENCE_RADIUS_METERS = float(os.getenv("DEFAULT_GEOFENCE_RADIUS_METERS", "100"))
GEOFENCE_MANUAL_MARKS = bool(int(os.getenv("GEOFENCE_MANUAL_MARKS", "0")))
# Multiple gunicorn workers need the polling feed for live rosters.
FEED_POLL_SECONDS = float(os.getenv("FEED_POLL_SECONDS", "2")) or None

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
