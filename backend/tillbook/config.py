# backend/tillbook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tillbook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Bearer token lifetime
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Opening-balance advisory thresholds (cents / basis points)
    OPENING_CASH_VARIANCE_ABS_CENTS = int(os.environ.get("OPENING_CASH_VARIANCE_ABS_CENTS", "5000"))
    OPENING_BANK_VARIANCE_ABS_CENTS = int(os.environ.get("OPENING_BANK_VARIANCE_ABS_CENTS", "10000"))
    OPENING_VARIANCE_PCT_BPS = int(os.environ.get("OPENING_VARIANCE_PCT_BPS", "500"))

    # Bcrypt cost factor (tests lower it)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
