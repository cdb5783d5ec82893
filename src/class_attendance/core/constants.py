"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Sessions are scheduled in a fixed civil offset (UTC+1, no DST).
LOCAL_UTC_OFFSET_HOURS = 1
LOCAL_TZ_NAME = "WAT"

LATE_WINDOW_MINUTES = 10

SESSION_TOKEN_LENGTH = 32
SESSION_TOKEN_ATTEMPTS = 3

DEFAULT_STATUS_POLL_SECONDS = 10
DEFAULT_REFRESH_SECONDS = 30
DEFAULT_DB_CONNECT_TIMEOUT = 10
