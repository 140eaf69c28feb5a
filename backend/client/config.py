from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return int(raw)
        except ValueError:
            pass
    return default


def clusters_only_zoom() -> int:
    return _int_env("ZONING_CLUSTERS_ONLY_ZOOM", 17)


def full_detail_zoom() -> int:
    return _int_env("ZONING_FULL_DETAIL_ZOOM", 17)


def api_base_url() -> str:
    return (os.getenv("ZONING_API_BASE_URL") or "http://localhost:8000").strip().rstrip("/")


def api_timeout_s() -> float:
    raw = (os.getenv("ZONING_API_TIMEOUT_S") or "").strip()
    if raw:
        try:
            return max(0.1, float(raw))
        except ValueError:
            pass
    return 15.0
