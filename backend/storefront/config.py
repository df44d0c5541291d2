# backend/storefront/config.py
from __future__ import annotations
import os
from pathlib import Path


DEFAULT_SECRET_KEY = "dev-secret-key-change-me"


class ConfigurationError(RuntimeError):
    """Raised at startup when a value the app cannot run without is missing."""


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", DEFAULT_SECRET_KEY)

    # HS256 secret for the admin session token (falls back to SECRET_KEY)
    SESSION_SIGNING_SECRET = os.environ.get("SESSION_SIGNING_SECRET") or os.environ.get("JWT_SECRET")

    # Remote catalog: endpoint + credential tiers. Any of these missing means
    # the static JSON catalog answers reads and writes are refused.
    CATALOG_DATABASE_URL = os.environ.get("CATALOG_DATABASE_URL")
    CATALOG_ANON_KEY = os.environ.get("CATALOG_ANON_KEY")
    CATALOG_SERVICE_KEY = os.environ.get("CATALOG_SERVICE_KEY") or os.environ.get("CATALOG_SERVICE_ROLE_KEY")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bundled products.json / categories.json / site-config.json
    CATALOG_DATA_DIR = os.environ.get(
        "CATALOG_DATA_DIR",
        str(Path(__file__).resolve().parent / "data"),
    )

    # Admin bootstrap account; the password is required at startup
    ADMIN_DEFAULT_EMAIL = os.environ.get("ADMIN_DEFAULT_EMAIL", "admin@storefront.local")
    ADMIN_DEFAULT_PASSWORD = os.environ.get("ADMIN_DEFAULT_PASSWORD")

    WHATSAPP_PHONE = os.environ.get("WHATSAPP_PHONE")
    PRODUCTS_PAGE_SIZE = _env_int("PRODUCTS_PAGE_SIZE", 12)

    # (max requests, window seconds)
    LOGIN_RATE_LIMIT = (_env_int("LOGIN_RATE_LIMIT_MAX", 5), _env_int("LOGIN_RATE_LIMIT_WINDOW", 15 * 60))
    ADMIN_RATE_LIMIT = (_env_int("ADMIN_RATE_LIMIT_MAX", 50), _env_int("ADMIN_RATE_LIMIT_WINDOW", 5 * 60))

    # Background sweep of rate-limit keys and idle sessions; 0 disables the thread
    MAINTENANCE_SWEEP_SECONDS = _env_int("MAINTENANCE_SWEEP_SECONDS", 60 * 60)

    SECURITY_LOG_CAPACITY = _env_int("SECURITY_LOG_CAPACITY", 1000)
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "true").lower() != "false"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
