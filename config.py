import os
from dotenv import load_dotenv

load_dotenv()


def _bool_env(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "thinkquiz-dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///thinkquiz.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pool options only apply to server databases; SQLite uses its own pool
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 5))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 10))
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {}
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_pre_ping": True,
            "pool_size": DB_POOL_SIZE,
            "max_overflow": DB_MAX_OVERFLOW,
        }

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _bool_env("SESSION_COOKIE_SECURE", False)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    UPLOADS_DIR = os.getenv("UPLOADS_DIR", os.path.join(BASE_DIR, "uploads"))
    MAX_PICTURE_BYTES = int(os.getenv("MAX_PICTURE_BYTES", 2 * 1024 * 1024))
    # Whole request body, leaves room for multipart framing around the picture
    MAX_CONTENT_LENGTH = MAX_PICTURE_BYTES + 256 * 1024

    ADMIN_EMAILS = [
        e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
    ]

    DAILY_ACCESS_HOURS = int(os.getenv("DAILY_ACCESS_HOURS", 24))
    DEFAULT_ACCESS_PRICE = float(os.getenv("DEFAULT_ACCESS_PRICE", 2.0))
    MIN_DEPOSIT_AMOUNT = float(os.getenv("MIN_DEPOSIT_AMOUNT", 5))

    LEADERBOARD_CACHE_SECONDS = int(os.getenv("LEADERBOARD_CACHE_SECONDS", 300))
    STREAM_CACHE_SECONDS = int(os.getenv("STREAM_CACHE_SECONDS", 5))

    # Stored procedures are only attempted on PostgreSQL
    USE_DB_PROCEDURES = _bool_env("USE_DB_PROCEDURES", True)

    UPSTASH_REDIS_REST_URL = os.getenv("UPSTASH_REDIS_REST_URL")
    UPSTASH_REDIS_REST_TOKEN = os.getenv("UPSTASH_REDIS_REST_TOKEN")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ADMIN_EMAILS = ["admin@example.com"]
    UPSTASH_REDIS_REST_URL = None
    UPSTASH_REDIS_REST_TOKEN = None
    LOG_LEVEL = "WARNING"
