"""
Environment-aware configuration.
Values come from the process environment (and .env via python-dotenv).
validate_config() runs once at app creation; a bad signing key stops startup.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

from utils.exceptions import ConfigError

load_dotenv()  # Read .env if present

MIN_SECRET_LENGTH = 32
MIN_PRODUCTION_SECRET_LENGTH = 64


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    # CORS: the React front end sends cookies, so origins must be explicit in prod
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///session-api.db")
    SQL_ECHO = _env_bool("SQL_ECHO", "false")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Access tokens
    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "session-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))

    # Refresh tokens
    REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "7")))
    REVOKE_ALL_ON_REUSE = _env_bool("REVOKE_ALL_ON_REUSE", "false")
    REUSE_GRACE_SECONDS = int(os.getenv("REUSE_GRACE_SECONDS", "10"))

    # Cookies
    ACCESS_COOKIE_NAME = os.getenv("ACCESS_COOKIE_NAME", "site_auth")
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "site_refresh")
    AUTH_URL_PREFIX = "/api/v1/auth"
    COOKIE_SECURE = True

    # Expiry reaper
    REAPER_ENABLED = _env_bool("REAPER_ENABLED", "true")
    REAPER_INTERVAL_SECONDS = int(os.getenv("REAPER_INTERVAL_SECONDS", "3600"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    APP_ENV = "dev"
    # local http: browsers drop Secure cookies
    COOKIE_SECURE = False
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-only-signing-secret-change-me-0123456789")


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "testing"
    COOKIE_SECURE = False
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET = "test-signing-secret-for-automated-runs-only-42"
    REAPER_ENABLED = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "production"


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


def validate_config(config) -> None:
    """Refuse to start without a usable signing key."""
    secret = config.get("JWT_SECRET")
    if not secret:
        raise ConfigError("JWT_SECRET is not set")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ConfigError(f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters")
    if config.get("APP_ENV", "").lower() in ("prod", "production"):
        if "change" in secret.lower() or len(secret) < MIN_PRODUCTION_SECRET_LENGTH:
            raise ConfigError(
                f"Production JWT_SECRET must be a random string of {MIN_PRODUCTION_SECRET_LENGTH}+ characters"
            )
