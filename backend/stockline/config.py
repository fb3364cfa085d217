# backend/stockline/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockline.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockline.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Retry policy for lock contention / stale version conflicts
    RETRY_ATTEMPTS = int(os.environ.get("STOCKLINE_RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF = float(os.environ.get("STOCKLINE_RETRY_BACKOFF", "0.1"))

    # Order codes look like ORD-0001
    ORDER_CODE_PREFIX = os.environ.get("STOCKLINE_ORDER_CODE_PREFIX", "ORD")
    ORDER_CODE_PAD = int(os.environ.get("STOCKLINE_ORDER_CODE_PAD", "4"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
