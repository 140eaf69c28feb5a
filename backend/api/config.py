from __future__ import annotations

import os

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def cors_origins() -> list[str]:
    raw = (os.getenv("ZONING_CORS_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def log_level() -> str:
    v = (os.getenv("ZONING_LOG_LEVEL") or "INFO").strip().upper()
    return v if v in _LOG_LEVELS else "INFO"
