"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TRIAL_DAYS = 30
DEFAULT_TIMEZONE = "UTC"
DEFAULT_KIOSK_TIMEOUT_MINUTES = 60
MAX_KIOSK_TIMEOUT_MINUTES = 1440

STARTER_MAX_MEMBERS = 100

EXTERNAL_URL_TOKEN_LENGTH = 16
EXTERNAL_PIN_LENGTH = 6
DEFAULT_EXTERNAL_MAX_ATTEMPTS = 10
DEFAULT_EXTERNAL_WINDOW_MINUTES = 15

DEFAULT_FOLLOW_UP_THRESHOLD = 3
DEFAULT_FOLLOW_UP_CYCLE_DAYS = 7

DEFAULT_SEARCH_LIMIT = 25
