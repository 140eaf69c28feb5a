from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Callable

from geo.aoi import BBox

from .grid import ClusterGrid
from .types import ClusterCell

logger = logging.getLogger(__name__)

CacheKey = tuple[float, float, float, float, float]


@dataclass
class _Entry:
    cells: list[ClusterCell]
    expires_at: float


class _InFlight:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.cells: list[ClusterCell] | None = None
        self.error: BaseException | None = None


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int


class ClusterCache:
    """
    LRU + TTL memoization of `ClusterGrid.cluster`, keyed on exact (N, S, E, W, zoom).

    Concurrent misses on the same key share one computation; a failed computation is
    raised to every waiter and not cached.
    """

    def __init__(
        self,
        grid: ClusterGrid,
        *,
        min_cluster_size: int = 10,
        max_entries: int = 500,
        ttl_s: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.grid = grid
        self.min_cluster_size = int(min_cluster_size)
        self.max_entries = max(1, int(max_entries))
        self.ttl_s = float(ttl_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, _Entry] = OrderedDict()
        self._inflight: dict[CacheKey, _InFlight] = {}
        self._generation = 0
        self._hits = 0
        self._misses = 0

    def get_or_compute(self, bounds: BBox, zoom: float) -> list[ClusterCell]:
        key: CacheKey = (*bounds.nsew_key(), float(zoom))
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if entry.expires_at > self._clock():
                    self._entries.move_to_end(key)
                    self._hits += 1
                    return _copy_cells(entry.cells)
                del self._entries[key]
            self._misses += 1
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _InFlight()
                self._inflight[key] = flight
            generation = self._generation

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return _copy_cells(flight.cells or [])

        try:
            cells = self.grid.cluster(bounds, zoom, self.min_cluster_size)
        except BaseException as e:
            flight.error = e
            with self._lock:
                self._inflight.pop(key, None)
            flight.done.set()
            raise

        flight.cells = cells
        with self._lock:
            self._inflight.pop(key, None)
            # Results computed before an invalidate() may be stale; hand them to
            # waiters but do not store them.
            if generation == self._generation:
                self._put(key, cells)
        flight.done.set()
        logger.debug("Cluster cache miss for %s: %d cells", key, len(cells))
        return _copy_cells(cells)

    def invalidate(self) -> None:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.info("Cluster cache invalidated (%d entries dropped)", n)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _put(self, key: CacheKey, cells: list[ClusterCell]) -> None:
        self._entries[key] = _Entry(cells=_copy_cells(cells), expires_at=self._clock() + self.ttl_s)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


def _copy_cells(cells: list[ClusterCell]) -> list[ClusterCell]:
    # Cells are frozen but their breakdown dicts are not.
    return [replace(c, zoning_breakdown=dict(c.zoning_breakdown)) for c in cells]
