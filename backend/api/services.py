from __future__ import annotations

import threading
from dataclasses import dataclass

from audit.log import AuditLog
from clustering.cache import ClusterCache
from clustering.config import cluster_cache_size, cluster_cache_ttl_s, min_cluster_size
from clustering.grid import ClusterGrid
from store.duckdb import DuckDBParcelStore
from store.singleton import get_store, reset_store
from zoning.mutator import ZoningMutator


@dataclass(frozen=True)
class Services:
    store: DuckDBParcelStore
    clusters: ClusterCache
    audit: AuditLog
    mutator: ZoningMutator


_SERVICES: Services | None = None
_SERVICES_LOCK = threading.RLock()


def _build(store: DuckDBParcelStore) -> Services:
    clusters = ClusterCache(
        ClusterGrid(store),
        min_cluster_size=min_cluster_size(),
        max_entries=cluster_cache_size(),
        ttl_s=cluster_cache_ttl_s(),
    )
    audit = AuditLog(store)
    mutator = ZoningMutator(store, audit)
    mutator.add_commit_hook(clusters.invalidate)
    return Services(store=store, clusters=clusters, audit=audit, mutator=mutator)


def get_services() -> Services:
    global _SERVICES
    with _SERVICES_LOCK:
        store = get_store()
        # The store singleton reopens when ZONING_DB_PATH changes; rebuild on top of it.
        if _SERVICES is None or _SERVICES.store is not store:
            _SERVICES = _build(store)
        return _SERVICES


def reset_services() -> None:
    global _SERVICES
    with _SERVICES_LOCK:
        _SERVICES = None
        reset_store()
