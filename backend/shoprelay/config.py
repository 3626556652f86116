# backend/shoprelay/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    # Signs device/owner bearer tokens; override in every deployment
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the working directory unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///shoprelay.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # One document row per deployment
    SYNC_DOCUMENT_NAME = os.environ.get("SYNC_DOCUMENT_NAME", "default")

    # Expiry gate: "today" is evaluated in this zone; shops may override the soon window
    SYNC_TIMEZONE = os.environ.get("SYNC_TIMEZONE", "Africa/Lagos")
    SYNC_EXPIRY_SOON_DAYS = _env_int("SYNC_EXPIRY_SOON_DAYS", 90)

    SYNC_TOKEN_MAX_AGE_DAYS = _env_int("SYNC_TOKEN_MAX_AGE_DAYS", 30)
    SYNC_RETRY_ATTEMPTS = _env_int("SYNC_RETRY_ATTEMPTS", 3)
