# backend/storefront/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # SQLite DB stored next to the instance folder unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Checkout validation
    MIN_PHONE_LENGTH = int(os.environ.get("MIN_PHONE_LENGTH", "10"))

    # Where stock leaves the shelf: "order_created" or "order_confirmed"
    STOCK_COMMIT_POINT = os.environ.get("STOCK_COMMIT_POINT", "order_created")

    # Lock / optimistic-version conflict handling
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    # Audit trail
    AUDIT_ENABLED = _env_bool("AUDIT_ENABLED", True)
    AUDIT_DEFAULT_ACTOR = os.environ.get("AUDIT_DEFAULT_ACTOR", "Admin")

    # Set by the identity provider in front of the admin back office
    ADMIN_IDENTITY_HEADER = os.environ.get("ADMIN_IDENTITY_HEADER", "X-Authenticated-User")
