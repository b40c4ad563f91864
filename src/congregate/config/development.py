import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "congregate_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Base URL printed on external check-in links and QR codes
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")

TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "30"))

FOLLOW_UP_THRESHOLD = int(os.getenv("FOLLOW_UP_THRESHOLD", "3"))
FOLLOW_UP_CYCLE_DAYS = int(os.getenv("FOLLOW_UP_CYCLE_DAYS", "7"))

EXTERNAL_CHECKIN_MAX_ATTEMPTS = int(os.getenv("EXTERNAL_CHECKIN_MAX_ATTEMPTS", "10"))
EXTERNAL_CHECKIN_WINDOW_MINUTES = int(os.getenv("EXTERNAL_CHECKIN_WINDOW_MINUTES", "15"))

SMS_API_URL = os.getenv("SMS_API_URL", "")
SMS_API_KEY = os.getenv("SMS_API_KEY", "")
SMS_SENDER_NAME = os.getenv("SMS_SENDER_NAME", "Congregate")
EMAIL_API_URL = os.getenv("EMAIL_API_URL", "")
EMAIL_API_KEY = os.getenv("EMAIL_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@localhost")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
