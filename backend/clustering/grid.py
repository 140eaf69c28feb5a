from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from errors import MalformedGeometry
from geo.aoi import BBox
from geo.geometry import bounds as geometry_bounds
from geo.geometry import representative_point
from parcels.types import Parcel
from store.types import GeometryStore
from zoning.labels import ZoningVocabulary, get_vocabulary

from .types import ClusterCell

logger = logging.getLogger(__name__)

# Cell edge (degrees) at zoom 16; doubles per zoom level below, halves above.
BASE_CELL_DEG = 0.001
BASE_CELL_ZOOM = 16


def cell_size(zoom: float) -> float:
    return BASE_CELL_DEG * (2.0 ** (BASE_CELL_ZOOM - float(zoom)))


@dataclass
class _Acc:
    count: int = 0
    sum_lon: float = 0.0
    sum_lat: float = 0.0
    min_lon: float = math.inf
    min_lat: float = math.inf
    max_lon: float = -math.inf
    max_lat: float = -math.inf
    breakdown: dict[str, int] = field(default_factory=dict)

    def add(self, point: tuple[float, float], extent: BBox, label: str) -> None:
        lon, lat = point
        self.count += 1
        self.sum_lon += lon
        self.sum_lat += lat
        self.min_lon = min(self.min_lon, extent.min_lon)
        self.min_lat = min(self.min_lat, extent.min_lat)
        self.max_lon = max(self.max_lon, extent.max_lon)
        self.max_lat = max(self.max_lat, extent.max_lat)
        self.breakdown[label] = self.breakdown.get(label, 0) + 1


class ClusterGrid:
    """
    Grid clustering over a GeometryStore.

    Each parcel is assigned to the cell holding its representative point (centroid,
    else first vertex). Cells smaller than `min_cluster_size` are dropped; sparse
    regions are the caller's business.
    """

    def __init__(self, store: GeometryStore, *, vocabulary: ZoningVocabulary | None = None):
        self.store = store
        self._vocabulary = vocabulary

    @property
    def vocabulary(self) -> ZoningVocabulary:
        return self._vocabulary or get_vocabulary()

    def cluster(self, bounds: BBox, zoom: float, min_cluster_size: int = 10) -> list[ClusterCell]:
        size = cell_size(zoom)
        parcels = self.store.parcels_in_bounds(bounds)
        if len(parcels) < min_cluster_size:
            return []

        vocab = self.vocabulary
        cells: dict[tuple[int, int], _Acc] = {}
        for p in parcels:
            placed = _place(p)
            if placed is None:
                continue
            point, extent = placed
            key = (math.floor(point[0] / size), math.floor(point[1] / size))
            acc = cells.get(key)
            if acc is None:
                acc = _Acc(breakdown={label: 0 for label in vocab.breakdown_labels()})
                cells[key] = acc
            acc.add(point, extent, vocab.bucket(p.zoning_type))

        out: list[ClusterCell] = []
        for acc in cells.values():
            if acc.count < min_cluster_size:
                continue
            out.append(
                ClusterCell(
                    center=(acc.sum_lon / acc.count, acc.sum_lat / acc.count),
                    count=acc.count,
                    bounds=BBox(
                        min_lon=acc.min_lon,
                        min_lat=acc.min_lat,
                        max_lon=acc.max_lon,
                        max_lat=acc.max_lat,
                    ),
                    zoning_breakdown=acc.breakdown,
                )
            )
        logger.debug(
            "Clustered %d parcels into %d cells (zoom=%s, cell=%.6f deg)",
            len(parcels),
            len(out),
            zoom,
            size,
        )
        return out


def _place(p: Parcel) -> tuple[tuple[float, float], BBox] | None:
    try:
        return representative_point(p.geometry), geometry_bounds(p.geometry)
    except (MalformedGeometry, IndexError, ValueError) as e:
        logger.warning("Excluding parcel %s from clustering: %s", p.id, e)
        return None
