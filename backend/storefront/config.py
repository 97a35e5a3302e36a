# backend/storefront/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer credentials (HS256 JWT)
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-me")
    JWT_EXPIRES_DAYS = int(os.environ.get("JWT_EXPIRES_DAYS", "7"))
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)

    # Checkout pricing, all amounts in cents
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "800"))
    FREE_SHIPPING_THRESHOLD_CENTS = int(os.environ.get("FREE_SHIPPING_THRESHOLD_CENTS", "5000"))
    FLAT_SHIPPING_CENTS = int(os.environ.get("FLAT_SHIPPING_CENTS", "1000"))

    CORS_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
        ).split(",")
        if origin.strip()
    }

    # Echo tracebacks in 500 envelopes (development only)
    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS", False)
