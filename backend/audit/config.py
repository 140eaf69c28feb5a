from __future__ import annotations

import os


def audit_max_entries() -> int:
    raw = (os.getenv("ZONING_AUDIT_MAX_ENTRIES") or "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return 1000


def audit_retention_days() -> float:
    raw = (os.getenv("ZONING_AUDIT_RETENTION_DAYS") or "").strip()
    if raw:
        try:
            return max(0.0, float(raw))
        except ValueError:
            pass
    return 30.0
