from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone: str
    app_host: str
    app_port: int
    sqlite_busy_timeout_ms: int
    preview_occurrences: int
    max_recurrence_end_after: int


def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./vendorpay.db"),
        timezone=os.getenv("TZ", "Asia/Kolkata"),
        app_host=os.getenv("APP_HOST", "0.0.0.0"),
        app_port=int(os.getenv("APP_PORT", "8000")),
        sqlite_busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        preview_occurrences=int(os.getenv("PREVIEW_OCCURRENCES", "5")),
        max_recurrence_end_after=int(os.getenv("MAX_RECURRENCE_END_AFTER", "100")),
    )
