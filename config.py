import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file next to app.py unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "quickcourt.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # sqlite waits this long on a locked database before raising OperationalError
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 5}} if SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "quickcourt_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    PASSWORD_MIN_LEN = int(os.getenv("PASSWORD_MIN_LEN", "8"))

    # Booking
    PLATFORM_FEE_PERCENT = int(os.getenv("PLATFORM_FEE_PERCENT", "5"))
    BOOKING_ID_PREFIX = os.getenv("BOOKING_ID_PREFIX", "QC")
    SLOT_DAY_START_HOUR = int(os.getenv("SLOT_DAY_START_HOUR", "6"))
    SLOT_DAY_END_HOUR = int(os.getenv("SLOT_DAY_END_HOUR", "22"))
    MAX_PLAYERS = int(os.getenv("MAX_PLAYERS", "20"))

    # Seconds a single availability store call may take before failing
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    # Payment gateway stub
    PAYMENT_STUB_SUCCEEDS = os.getenv("PAYMENT_STUB_SUCCEEDS", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = "DEBUG"
