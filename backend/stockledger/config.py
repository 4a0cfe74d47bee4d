# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Unit-of-work retry policy for lock / optimistic-version conflicts
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))

    # Tenant defaults used when an organization has no explicit setting
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "$")
    DEFAULT_DUE_DATE_DAYS = int(os.environ.get("DEFAULT_DUE_DATE_DAYS", "30"))

    # Number of change notifications kept for /api/system/changes
    CHANGE_HISTORY_SIZE = 200
