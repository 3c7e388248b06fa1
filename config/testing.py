import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_test"),
}

API_KEY = ""

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

TOKEN_WINDOW_SECONDS = 60
DEFAULT_GEOFENCE_RADIUS_METERS = 100.0
GEOFENCE_MANUAL_MARKS = False
FEED_POLL_SECONDS = None

AUTO_INIT_DB = False
