from __future__ import annotations

import logging
from typing import Any, Iterable

from parcels.geojson import feature_id

logger = logging.getLogger(__name__)


class FeatureSet:
    """
    Parcel features merged across fetches, keyed on parcel id. The first copy of an
    id wins; later copies are ignored.
    """

    def __init__(self) -> None:
        self._by_id: dict[int, dict[str, Any]] = {}

    def merge(self, features: Iterable[dict[str, Any]]) -> int:
        added = 0
        for f in features:
            pid = feature_id(f or {})
            if pid is None:
                logger.warning("Ignoring feature without parcel id")
                continue
            if pid in self._by_id:
                continue
            self._by_id[pid] = f
            added += 1
        return added

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, pid: object) -> bool:
        return pid in self._by_id

    def ids(self) -> list[int]:
        return list(self._by_id.keys())

    def features(self) -> list[dict[str, Any]]:
        return list(self._by_id.values())

    def to_feature_collection(self) -> dict[str, Any]:
        return {"type": "FeatureCollection", "features": self.features()}

    def clear(self) -> None:
        self._by_id.clear()
