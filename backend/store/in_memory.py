from __future__ import annotations

from typing import Any, Iterable

from shapely.geometry import box as shapely_box
from shapely.strtree import STRtree

from geo.aoi import BBox
from geo.geometry import bounds, intersects_bbox
from parcels.loaders import parse_records, records_from_feature_collection
from parcels.types import Parcel, ParcelRecord
from store.types import GeometryStore


class InMemoryParcelStore(GeometryStore):
    """
    Holds parsed parcels in memory behind an STRtree of their bboxes.

    Malformed records are logged and dropped once, at construction.
    """

    def __init__(self, records: Iterable[ParcelRecord] = ()):
        self._parcels: list[Parcel] = parse_records(records)
        envelopes = []
        for p in self._parcels:
            b = bounds(p.geometry)
            envelopes.append(shapely_box(b.min_lon, b.min_lat, b.max_lon, b.max_lat))
        self._tree = STRtree(envelopes)

    @classmethod
    def from_features(cls, features: Iterable[dict[str, Any]]) -> "InMemoryParcelStore":
        return cls(records_from_feature_collection({"features": list(features)}))

    def __len__(self) -> int:
        return len(self._parcels)

    def parcels_in_bounds(self, bbox: BBox) -> list[Parcel]:
        if not self._parcels:
            return []
        b = bbox.normalized()
        idxs = _to_int_list(self._tree.query(shapely_box(b.min_lon, b.min_lat, b.max_lon, b.max_lat)))
        out = [self._parcels[i] for i in sorted(idxs)]
        return [p for p in out if intersects_bbox(p.geometry, b)]

    def all_parcels(self) -> list[Parcel]:
        return list(self._parcels)


def _to_int_list(idxs: Any) -> list[int]:
    # Shapely STRtree returns numpy.ndarray of indices.
    if idxs is None:
        return []
    return [int(i) for i in idxs]
