from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from geo.aoi import BBox


@dataclass(frozen=True)
class ClusterCell:
    center: tuple[float, float]  # (lon, lat)
    count: int
    bounds: BBox
    zoning_breakdown: dict[str, int] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        lon, lat = self.center
        return {
            "center": [lon, lat],
            "count": self.count,
            "zoningBreakdown": dict(self.zoning_breakdown),
            "bounds": self.bounds.as_wsen(),
        }
