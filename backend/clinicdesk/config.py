# backend/clinicdesk/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    APP_ENV = os.environ.get("APP_ENV", "development")

    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Session credential signing. JWT_SECRET falls back to SECRET_KEY.
    JWT_SECRET = os.environ.get("JWT_SECRET") or SECRET_KEY
    JWT_ALGORITHM = "HS256"
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "8"))
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "clinic-session")
    AUTH_COOKIE_SECURE = _env_flag("AUTH_COOKIE_SECURE", APP_ENV == "production")

    # Host that serves the platform root; clinics live on <slug>.<ROOT_DOMAIN>
    ROOT_DOMAIN = os.environ.get("ROOT_DOMAIN", "localhost:5000")

    # SQLite DB stored in backend/instance/clinicdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///clinicdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Receipt prefix used when a clinic has no abbreviation
    RECEIPT_DEFAULT_ABBREVIATION = "CLI"
