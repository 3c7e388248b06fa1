"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TOKEN_WINDOW_SECONDS = 60
DEFAULT_GEOFENCE_RADIUS_METERS = 100
EARTH_RADIUS_METERS = 6_371_000
DEFAULT_DRAIN_INTERVAL_SECONDS = 30
DEFAULT_FEED_POLL_SECONDS = 2
DEFAULT_HTTP_TIMEOUT_SECONDS = 10
OUTBOX_FILE_NAME = "presence_outbox.json"
