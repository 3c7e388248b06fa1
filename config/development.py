import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_db"),
}

# Shared secret for device/kiosk API calls; empty disables the check.
API_KEY = os.getenv("API_KEY", "")

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

TOKEN_WINDOW_SECONDS = int(os.getenv("TOKEN_WINDOW_SECONDS", "60"))
DEFAULT_GEOFENCE_RADIUS_METERS = float(os.getenv("DEFAULT_GEOFENCE_RADIUS_METERS", "100"))
GEOFENCE_MANUAL_MARKS = bool(int(os.getenv("GEOFENCE_MANUAL_MARKS", "0")))
# Unset: in-process fan-out. Set (seconds): poll the database for admissions from other workers.
FEED_POLL_SECONDS = float(os.getenv("FEED_POLL_SECONDS", "0")) or None

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
