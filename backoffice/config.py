"""Centralized application configuration for all environments."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Final

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Runtime environment wins over values from the .env file
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _str_to_bool(value: str | bool | None, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _determine_database_url() -> str:
    """
    Return a connection string using the following precedence:
    1. Explicit DATABASE_URL
    2. Individual DB_* components (for PostgreSQL)
    3. Local SQLite fallback (for onboarding / tests)
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    username = os.getenv("DB_USERNAME")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME")

    if all([username, password, host, name]):
        driver = os.getenv("DB_DRIVER", "postgresql+psycopg2")
        return f"{driver}://{username}:{password}@{host}:{port}/{name}"

    fallback_path = BASE_DIR / "db" / "backoffice.db"
    fallback_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{fallback_path.as_posix()}"


class Config:
    """Default runtime configuration shared across Flask, services, and CLI commands."""

    APP_NAME: Final[str] = os.getenv("APP_NAME", "Back-office Commerce API")
    APP_ENV: Final[str] = os.getenv("APP_ENV", "development")

    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-prod")
    DEBUG: Final[bool] = _str_to_bool(os.getenv("FLASK_DEBUG"), default=APP_ENV == "development")
    TESTING: Final[bool] = _str_to_bool(os.getenv("FLASK_TESTING"), default=False)

    FLASK_RUN_HOST: Final[str] = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    FLASK_RUN_PORT: Final[int] = int(os.getenv("FLASK_RUN_PORT", "3000"))

    # Database
    DATABASE_URL: Final[str] = _determine_database_url()
    SQL_ECHO: Final[bool] = _str_to_bool(os.getenv("SQL_ECHO"), default=False)
    DB_POOL_SIZE: Final[int] = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW: Final[int] = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT: Final[int] = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    AUTO_CREATE_TABLES: Final[bool] = _str_to_bool(
        os.getenv("AUTO_CREATE_TABLES"), default=APP_ENV in {"development", "test"}
    )

    # Authentication
    JWT_SECRET_KEY: Final[str] = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_HOURS: Final[int] = int(os.getenv("JWT_ACCESS_TOKEN_HOURS", "24"))
    PASSWORD_MIN_LENGTH: Final[int] = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))
    CORS_ORIGINS: Final[tuple[str, ...]] = _split_csv(os.getenv("CORS_ORIGINS")) or ("*",)

    # Orders
    SALESMAN_COMMISSION_RATE: Final[float] = float(os.getenv("SALESMAN_COMMISSION_RATE", "0.10"))
    DELIVERY_DISTANCE_KM: Final[float] = float(os.getenv("DELIVERY_DISTANCE_KM", "50"))
    DELIVERY_REQUIRE_CITY_COVERAGE: Final[bool] = _str_to_bool(
        os.getenv("DELIVERY_REQUIRE_CITY_COVERAGE"), default=False
    )
    ORDER_NUMBER_ATTEMPTS: Final[int] = int(os.getenv("ORDER_NUMBER_ATTEMPTS", "5"))

    # Listing
    DEFAULT_PAGE_SIZE: Final[int] = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE: Final[int] = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Observability
    STRUCTURED_LOGS_ENABLED: Final[bool] = _str_to_bool(os.getenv("STRUCTURED_LOGS_ENABLED"), default=True)
    LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")
    REQUEST_ID_HEADER: Final[str] = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
    OBSERVABILITY_ENABLED: Final[bool] = _str_to_bool(os.getenv("OBSERVABILITY_ENABLED"), default=True)

    # Bootstrap administrator (flask create-admin)
    ADMIN_NAME: Final[str] = os.getenv("ADMIN_NAME", "Admin User")
    ADMIN_EMAIL: Final[str] = os.getenv("ADMIN_EMAIL", "admin@shopease.com")
    ADMIN_PASSWORD: Final[str] = os.getenv("ADMIN_PASSWORD", "admin123")

    @classmethod
    def configure_app(cls, app: Any) -> None:
        """Apply core configuration to a Flask app instance."""
        app.config["SECRET_KEY"] = cls.SECRET_KEY
        app.config["ENV"] = cls.APP_ENV
        app.config["DEBUG"] = cls.DEBUG
        app.config["TESTING"] = cls.TESTING
        app.config["SQLALCHEMY_DATABASE_URI"] = cls.DATABASE_URL
        app.config["SQLALCHEMY_ECHO"] = cls.SQL_ECHO
        app.config["JWT_SECRET_KEY"] = cls.JWT_SECRET_KEY
        app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=cls.JWT_ACCESS_TOKEN_HOURS)
        app.config["JSON_SORT_KEYS"] = False
        app.config["SALESMAN_COMMISSION_RATE"] = cls.SALESMAN_COMMISSION_RATE
        app.config["DELIVERY_DISTANCE_KM"] = cls.DELIVERY_DISTANCE_KM
        app.config["STRUCTURED_LOGS_ENABLED"] = cls.STRUCTURED_LOGS_ENABLED
        app.config["OBSERVABILITY_ENABLED"] = cls.OBSERVABILITY_ENABLED
