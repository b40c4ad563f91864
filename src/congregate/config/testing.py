import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "congregate_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

PUBLIC_BASE_URL = "http://testserver"

TRIAL_DAYS = 30

FOLLOW_UP_THRESHOLD = 3
FOLLOW_UP_CYCLE_DAYS = 7

EXTERNAL_CHECKIN_MAX_ATTEMPTS = 5
EXTERNAL_CHECKIN_WINDOW_MINUTES = 15

SMS_API_URL = ""
SMS_API_KEY = ""
SMS_SENDER_NAME = "Congregate"
EMAIL_API_URL = ""
EMAIL_API_KEY = ""
EMAIL_FROM = "test@example.com"

AUTO_INIT_DB = False
