# backend/retailbooks/config.py
from __future__ import annotations
import os
from datetime import timedelta


def _origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the app unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///retailbooks.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer token lifetimes (access is short, refresh rotates)
    ACCESS_TOKEN_TTL = timedelta(minutes=int(os.environ.get("ACCESS_TOKEN_TTL_MINUTES", "15")))
    REFRESH_TOKEN_TTL = timedelta(days=int(os.environ.get("REFRESH_TOKEN_TTL_DAYS", "7")))

    # Plan assigned to tenants created without an explicit plan
    DEFAULT_PLAN_CODE = os.environ.get("DEFAULT_PLAN_CODE", "basic")
    TRIAL_DAYS = int(os.environ.get("TRIAL_DAYS", "14"))

    CORS_ALLOWED_ORIGINS = _origins(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stub government gateway: answer status checks with a rejection
    GIB_GATEWAY_REJECT = os.environ.get("GIB_GATEWAY_REJECT", "").lower() in ("1", "true", "yes")
