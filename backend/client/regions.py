from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from geo.aoi import BBox

from client.strategy import DetailStrategy, ZoomThresholds

# A region counts as loaded when a tracked box covers more than this share of it.
OVERLAP_LOADED_FRACTION = 0.5


@dataclass(frozen=True)
class LoadedRegion:
    bounds: BBox
    level: str  # "cluster" | "detail"
    zoom: int | None = None


def is_bounds_loaded(bounds: BBox, regions: Iterable[BBox]) -> bool:
    for r in regions:
        if r.contains(bounds):
            return True
        if bounds.overlap_fraction(r) > OVERLAP_LOADED_FRACTION:
            return True
    return False


class RegionTracker:
    """
    Append-only record of fetched boxes per level of detail.

    Cluster regions are only valid for the integer zoom they were fetched at.
    """

    def __init__(self) -> None:
        self.cluster_regions: list[LoadedRegion] = []
        self.detail_regions: list[LoadedRegion] = []

    def record(self, strategy: DetailStrategy, bounds: BBox, zoom: float) -> None:
        if strategy.fetches_clusters:
            self.cluster_regions.append(LoadedRegion(bounds=bounds, level="cluster", zoom=_zoom_level(zoom)))
        else:
            self.detail_regions.append(LoadedRegion(bounds=bounds, level="detail"))

    def is_loaded(self, strategy: DetailStrategy, bounds: BBox, zoom: float) -> bool:
        if strategy.fetches_clusters:
            level = _zoom_level(zoom)
            boxes = [r.bounds for r in self.cluster_regions if r.zoom == level]
        else:
            boxes = [r.bounds for r in self.detail_regions]
        return is_bounds_loaded(bounds, boxes)

    def on_zoom_change(self, previous: float | None, zoom: float, thresholds: ZoomThresholds) -> None:
        if zoom < thresholds.full_detail_zoom:
            self.detail_regions.clear()
        if thresholds.strategy_for(zoom).fetches_clusters:
            if previous is None or _zoom_level(previous) != _zoom_level(zoom):
                self.cluster_regions.clear()

    def clear(self) -> None:
        self.cluster_regions.clear()
        self.detail_regions.clear()


def _zoom_level(zoom: float) -> int:
    return int(math.floor(zoom))
