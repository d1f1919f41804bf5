# backend/lottery/config.py
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

    # SQLite DB stored in backend/instance/lottery.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lottery.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # First ticket number of a book when the operator does not supply one.
    # Most commissions print 000-based packs; some print 001-based.
    LOTTERY_TICKET_NUMBER_BASE = int(os.environ.get("LOTTERY_TICKET_NUMBER_BASE", "0"))

    # Reject received ranges whose size differs from the game's tickets_per_book
    LOTTERY_ENFORCE_BOOK_SIZE = _env_bool("LOTTERY_ENFORCE_BOOK_SIZE", True)

    # Retries for lock/optimistic-version conflicts on a single book
    LOTTERY_RETRY_ATTEMPTS = int(os.environ.get("LOTTERY_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
