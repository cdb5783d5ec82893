import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "class_attendance"),
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

LATE_WINDOW_MINUTES = int(os.getenv("LATE_WINDOW_MINUTES", "10"))
STATUS_POLL_SECONDS = int(os.getenv("STATUS_POLL_SECONDS", "10"))
REFRESH_SECONDS = int(os.getenv("REFRESH_SECONDS", "30"))
