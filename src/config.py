"""
Family Organizer — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # The family member using this client (sender / completer)
    CURRENT_USER: str

    # Local store
    DATABASE_PATH: str = "data/family.db"
    TIMEZONE: str = "Pacific/Auckland"

    # Retry wrapper: cold-start tolerant back-off
    RETRY_MAX_ATTEMPTS: int = 4
    RETRY_DELAYS_MS: list[int] = [800, 1600, 3200]
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Calendar expansion window (± months around the viewed date)
    CALENDAR_WINDOW_MONTHS: int = 3

    # Chat threads opened at startup
    CHAT_THREADS: list[str] = ["family"]

    # Push delivery: "webhook" | "telegram" | "webpush"
    PUSH_PROVIDER: str = "webhook"
    TELEGRAM_BOT_TOKEN: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_SUBJECT: str = ""

    @field_validator("RETRY_DELAYS_MS", mode="before")
    @classmethod
    def parse_delays(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(d.strip()) for d in v.split(",") if d.strip()]
        return [800, 1600, 3200]

    @field_validator("CHAT_THREADS", mode="before")
    @classmethod
    def parse_threads(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [t.strip() for t in v.split(",") if t.strip()]
        return ["family"]

    @field_validator("RETRY_MAX_ATTEMPTS", "CALENDAR_WINDOW_MONTHS", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    current_user = os.getenv("CURRENT_USER", "").strip()

    if not current_user:
        print("ERROR: CURRENT_USER is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        CURRENT_USER=current_user,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/family.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Pacific/Auckland"),
        RETRY_MAX_ATTEMPTS=os.getenv("RETRY_MAX_ATTEMPTS", "4"),
        RETRY_DELAYS_MS=os.getenv("RETRY_DELAYS_MS", "800,1600,3200"),
        REQUEST_TIMEOUT_SECONDS=os.getenv("REQUEST_TIMEOUT_SECONDS", "10"),
        CALENDAR_WINDOW_MONTHS=os.getenv("CALENDAR_WINDOW_MONTHS", "3"),
        CHAT_THREADS=os.getenv("CHAT_THREADS", "family"),
        PUSH_PROVIDER=os.getenv("PUSH_PROVIDER", "webhook"),
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        VAPID_PRIVATE_KEY=os.getenv("VAPID_PRIVATE_KEY", ""),
        VAPID_SUBJECT=os.getenv("VAPID_SUBJECT", ""),
    )


# Singleton, imported by the composition root and adapters as:
#   from src.config import settings
settings = _load_settings()
