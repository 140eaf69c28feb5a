from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from client.config import clusters_only_zoom, full_detail_zoom


class DetailStrategy(str, Enum):
    CLUSTERS_ONLY = "clusters_only"
    SPARSE_PARCELS = "sparse_parcels"
    FULL_DETAIL = "full_detail"

    @property
    def fetches_clusters(self) -> bool:
        return self is DetailStrategy.CLUSTERS_ONLY


@dataclass(frozen=True)
class ZoomThresholds:
    """
    Zoom levels at which the map switches from clusters to parcels.

    With the defaults both thresholds are 17, so `sparse_parcels` is never selected.
    """

    clusters_only_zoom: int = 17
    full_detail_zoom: int = 17

    def __post_init__(self) -> None:
        if self.clusters_only_zoom > self.full_detail_zoom:
            raise ValueError(
                f"clusters_only_zoom ({self.clusters_only_zoom}) must not exceed "
                f"full_detail_zoom ({self.full_detail_zoom})"
            )

    @classmethod
    def from_env(cls) -> "ZoomThresholds":
        return cls(clusters_only_zoom=clusters_only_zoom(), full_detail_zoom=full_detail_zoom())

    def strategy_for(self, zoom: float) -> DetailStrategy:
        if zoom < self.clusters_only_zoom:
            return DetailStrategy.CLUSTERS_ONLY
        if zoom < self.full_detail_zoom:
            return DetailStrategy.SPARSE_PARCELS
        return DetailStrategy.FULL_DETAIL
