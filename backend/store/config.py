from __future__ import annotations

import os
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def db_path() -> Path:
    raw = (os.getenv("ZONING_DB_PATH") or "").strip()
    if raw:
        return Path(raw)
    return _repo_root() / "data" / "parcels.duckdb"


def seed_geojson_path() -> Path | None:
    raw = (os.getenv("ZONING_SEED_GEOJSON") or "").strip()
    return Path(raw) if raw else None


def duckdb_threads() -> int:
    raw = (os.getenv("ZONING_DUCKDB_THREADS") or "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return max(1, int(os.cpu_count() or 1))
