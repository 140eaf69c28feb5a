from __future__ import annotations

import os


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return max(minimum, int(raw))
        except ValueError:
            pass
    return default


def _float_env(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return max(minimum, float(raw))
        except ValueError:
            pass
    return default


def min_cluster_size() -> int:
    return _int_env("ZONING_MIN_CLUSTER_SIZE", 10, minimum=1)


def cluster_cache_size() -> int:
    return _int_env("ZONING_CLUSTER_CACHE_SIZE", 500, minimum=1)


def cluster_cache_ttl_s() -> float:
    return _float_env("ZONING_CLUSTER_CACHE_TTL_S", 600.0)
