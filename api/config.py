"""
Environment-aware configuration.
Token secrets, lifetimes, cookie scope and database location all come from
the environment (.env is read if present). APP_ENV selects the class.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"


def _env_bool(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


class BaseConfig:
    DEBUG = False
    TESTING = False
    PRODUCTION = False
    # CORS: comma-separated list of origins allowed to send credentials
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3002").split(",")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///sessions.db")
    DATABASE_ECHO = _env_bool("DATABASE_ECHO", False)

    # Two signing domains; they must never share a key
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "60")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", str(7 * 24 * 3600))))
    JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "0"))
    # Presenting an already rotated refresh token revokes all of the principal's sessions
    REFRESH_REUSE_REVOKES_ALL = _env_bool("REFRESH_REUSE_REVOKES_ALL", False)

    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"
    DATABASE_ECHO = False
    JWT_ACCESS_SECRET = "test-access-secret"
    JWT_REFRESH_SECRET = "test-refresh-secret"
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=60)
    REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_LEEWAY_SECONDS = 0
    REFRESH_REUSE_REVOKES_ALL = False
    COOKIE_DOMAIN = None


class ProductionConfig(BaseConfig):
    DEBUG = False
    PRODUCTION = True


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
