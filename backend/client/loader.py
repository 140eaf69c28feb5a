from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Callable

from clustering.config import min_cluster_size as default_min_cluster_size
from clustering.grid import ClusterGrid
from clustering.types import ClusterCell
from geo.aoi import BBox
from store.in_memory import InMemoryParcelStore
from zoning.labels import get_vocabulary

from client.api import ApiError, ParcelApi
from client.features import FeatureSet
from client.regions import RegionTracker
from client.strategy import DetailStrategy, ZoomThresholds

logger = logging.getLogger(__name__)

DEBOUNCE_S = 0.3
REQUEST_PADDING = 0.1
FAILURE_COOLDOWN_S = 30.0

RequestKey = tuple[str, "int | None", tuple[float, float, float, float]]


class ViewportLoader:
    """
    Incremental map loader.

    Decides per viewport whether to fetch clusters or parcels, skips regions it already
    holds, merges parcels by id and keeps the cluster cells of every region fetched at
    the current integer zoom. Everything runs on one asyncio loop; fetches that were
    superseded by a newer viewport still merge their parcels (merging is
    order-independent) and cluster responses only ever replace their own region, so
    the arrival order does not matter. Clusters fetched for another zoom level are
    discarded.
    """

    def __init__(
        self,
        api: ParcelApi,
        *,
        thresholds: ZoomThresholds | None = None,
        debounce_s: float = DEBOUNCE_S,
        pad_ratio: float = REQUEST_PADDING,
        failure_cooldown_s: float = FAILURE_COOLDOWN_S,
        min_cluster_size: int | None = None,
        fallback_min_size: int = 1,
        on_change: Callable[["ViewportLoader"], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.thresholds = thresholds or ZoomThresholds.from_env()
        self.debounce_s = debounce_s
        self.pad_ratio = pad_ratio
        self.failure_cooldown_s = failure_cooldown_s
        self.min_cluster_size = min_cluster_size if min_cluster_size is not None else default_min_cluster_size()
        self.fallback_min_size = max(1, int(fallback_min_size))
        self.on_change = on_change
        self._clock = clock

        self.features = FeatureSet()
        self._cluster_layers: dict[tuple[float, float, float, float], list[ClusterCell]] = {}
        self.regions = RegionTracker()
        self.zoom: float | None = None

        self._pending: set[RequestKey] = set()
        self._failed: dict[RequestKey, float] = {}
        self._last_requested: RequestKey | None = None
        self._last_viewport: tuple[BBox, float] | None = None
        self._timer: asyncio.Task | None = None
        self._loads: set[asyncio.Task] = set()

    @property
    def strategy(self) -> DetailStrategy | None:
        if self.zoom is None:
            return None
        return self.thresholds.strategy_for(self.zoom)

    @property
    def clusters(self) -> list[ClusterCell]:
        """Union of the cluster cells of every region loaded at the current zoom level."""
        seen: dict[tuple[tuple[float, float], BBox], ClusterCell] = {}
        for cells in self._cluster_layers.values():
            for c in cells:
                seen.setdefault((c.center, c.bounds), c)
        return list(seen.values())

    # -- viewport events -----------------------------------------------------

    def viewport_changed(self, bounds: BBox, zoom: float) -> asyncio.Task:
        """Schedule a load after the debounce delay; a newer event restarts the timer."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._debounced(bounds, zoom))
        return self._timer

    async def _debounced(self, bounds: BBox, zoom: float) -> None:
        await asyncio.sleep(self.debounce_s)
        # Once the delay has passed the load is no longer cancellable by new events.
        task = asyncio.get_running_loop().create_task(self.load(bounds, zoom))
        self._loads.add(task)
        task.add_done_callback(self._loads.discard)

    async def settle(self) -> None:
        """Wait for the pending debounce timer and every load it started."""
        while self._timer is not None and not self._timer.done():
            await asyncio.wait([self._timer])
        if self._loads:
            await asyncio.gather(*list(self._loads))

    # -- loading -------------------------------------------------------------

    async def load(self, bounds: BBox, zoom: float) -> bool:
        """
        Load what the viewport needs. Returns True when a fetch was issued and
        succeeded, False when it was skipped or failed.
        """
        self._last_viewport = (bounds, zoom)
        self._apply_zoom(zoom)
        strategy = self.thresholds.strategy_for(zoom)

        if self.regions.is_loaded(strategy, bounds, zoom):
            return False

        padded = bounds.padded(self.pad_ratio)
        level = _zoom_level(zoom) if strategy.fetches_clusters else None
        key: RequestKey = (strategy.value, level, padded.nsew_key())
        if key == self._last_requested or key in self._pending:
            return False
        failed_at = self._failed.get(key)
        if failed_at is not None:
            if self._clock() - failed_at < self.failure_cooldown_s:
                return False
            del self._failed[key]

        self._pending.add(key)
        self._last_requested = key
        try:
            if strategy.fetches_clusters:
                await self._load_clusters(padded, zoom)
            else:
                await self._load_parcels(padded)
        except ApiError as e:
            logger.warning("Loading %s for %s failed: %s", strategy.value, padded.nsew_key(), e)
            self._failed[key] = self._clock()
            if self._last_requested == key:
                self._last_requested = None
            if strategy.fetches_clusters:
                self._synthesize_locally(padded, zoom)
                self._notify()
            return False
        finally:
            self._pending.discard(key)

        self.regions.record(strategy, padded, zoom)
        self._notify()
        return True

    async def refresh(self) -> bool:
        """Drop everything loaded so far and reload the last viewport (after a zoning update)."""
        self.features.clear()
        self._cluster_layers.clear()
        self.regions.clear()
        self._failed.clear()
        self._last_requested = None
        if self._last_viewport is None:
            self._notify()
            return False
        bounds, zoom = self._last_viewport
        return await self.load(bounds, zoom)

    async def _load_parcels(self, padded: BBox) -> None:
        features = await self.api.fetch_parcels(padded)
        added = self.features.merge(features)
        logger.debug("Merged %d new parcels (%d fetched)", added, len(features))

    async def _load_clusters(self, padded: BBox, zoom: float) -> None:
        cells = await self.api.fetch_clusters(padded, zoom)
        if not cells:
            cells = await self._fallback_cluster(padded)
        if self._is_current_zoom(zoom):
            self._cluster_layers[padded.nsew_key()] = list(cells)

    async def _fallback_cluster(self, padded: BBox) -> list[ClusterCell]:
        """
        No grid cell reached the minimum size: summarize whatever parcels are in the
        requested box as one cell so sparse areas stay visible.
        """
        features = await self.api.fetch_parcels(padded)
        self.features.merge(features)
        if len(features) < self.fallback_min_size:
            return []
        return [
            ClusterCell(
                center=padded.center,
                count=len(features),
                bounds=padded,
                zoning_breakdown=_breakdown(features),
            )
        ]

    def _synthesize_locally(self, padded: BBox, zoom: float) -> None:
        if not len(self.features) or not self._is_current_zoom(zoom):
            return
        store = InMemoryParcelStore.from_features(self.features.features())
        cells = ClusterGrid(store).cluster(padded, zoom, self.min_cluster_size)
        if cells:
            logger.info("Using %d locally computed clusters", len(cells))
            self._cluster_layers[padded.nsew_key()] = cells

    # -- state ---------------------------------------------------------------

    def _apply_zoom(self, zoom: float) -> None:
        previous = self.zoom
        if previous is not None and previous == zoom:
            return
        self.regions.on_zoom_change(previous, zoom, self.thresholds)
        if not self.thresholds.strategy_for(zoom).fetches_clusters:
            self._cluster_layers.clear()
        elif previous is None or _zoom_level(previous) != _zoom_level(zoom):
            self._cluster_layers.clear()
        self.zoom = zoom

    def _is_current_zoom(self, zoom: float) -> bool:
        return self.zoom is not None and _zoom_level(self.zoom) == _zoom_level(zoom)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)


def _zoom_level(zoom: float) -> int:
    return int(math.floor(zoom))


def _breakdown(features: list[dict[str, Any]]) -> dict[str, int]:
    vocab = get_vocabulary()
    out = {label: 0 for label in vocab.breakdown_labels()}
    for f in features:
        label = vocab.bucket((f.get("properties") or {}).get("zoning_typ"))
        out[label] += 1
    return out
