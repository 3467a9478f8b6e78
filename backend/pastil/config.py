# backend/pastil/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pastil.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pastil.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Checkout / cancellation
    CANCEL_WINDOW_SECONDS = int(os.environ.get("CANCEL_WINDOW_SECONDS", "30"))
    TRANSACTION_NUMBER_PAD = int(os.environ.get("TRANSACTION_NUMBER_PAD", "5"))

    # Notifications
    NOTIFICATION_QUEUE_SIZE = int(os.environ.get("NOTIFICATION_QUEUE_SIZE", "50"))

    # Object storage accounting (free tier defaults)
    STORAGE_LIMIT_MB = float(os.environ.get("STORAGE_LIMIT_MB", "1000"))
    STORAGE_BYTES_PER_IMAGE = int(os.environ.get("STORAGE_BYTES_PER_IMAGE", "150000"))
