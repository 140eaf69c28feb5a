from __future__ import annotations

import logging
import threading

from parcels.loaders import load_geojson_records
from store.config import db_path, duckdb_threads, seed_geojson_path
from store.duckdb import DuckDBParcelStore

logger = logging.getLogger(__name__)

_STORE: DuckDBParcelStore | None = None
_STORE_LOCK = threading.RLock()


def get_store() -> DuckDBParcelStore:
    global _STORE
    with _STORE_LOCK:
        path = db_path()
        if _STORE is not None:
            # If env/config changes the path during a dev session (or across tests),
            # reopen the store on the new path.
            if _STORE.path == str(path):
                return _STORE
            _STORE.close()
            _STORE = None

        _STORE = DuckDBParcelStore(path, threads=duckdb_threads())
        _seed_if_empty(_STORE)
        return _STORE


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.close()
            _STORE = None


def _seed_if_empty(store: DuckDBParcelStore) -> None:
    seed = seed_geojson_path()
    if seed is None or store.count() > 0:
        return
    if not seed.exists():
        logger.warning("Seed GeoJSON %s does not exist; starting with an empty store", seed)
        return
    n = store.load_records(load_geojson_records(seed))
    logger.info("Seeded %d parcels from %s", n, seed)
