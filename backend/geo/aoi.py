from __future__ import annotations

import math
from dataclasses import dataclass

from errors import ValidationError


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat
    - the public API speaks north/south/east/west; use `from_nsew` at the edges.
    - no antimeridian wraparound.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @classmethod
    def from_nsew(cls, north: float, south: float, east: float, west: float) -> "BBox":
        vals = [float(north), float(south), float(east), float(west)]
        if not all(math.isfinite(v) for v in vals):
            raise ValidationError("Bounds must be finite numbers")
        n, s, e, w = vals
        if n <= s:
            raise ValidationError(f"Invalid bounds: north ({n}) must be greater than south ({s})")
        if e <= w:
            raise ValidationError(f"Invalid bounds: east ({e}) must be greater than west ({w})")
        return cls(min_lon=w, min_lat=s, max_lon=e, max_lat=n)

    @property
    def north(self) -> float:
        return self.max_lat

    @property
    def south(self) -> float:
        return self.min_lat

    @property
    def east(self) -> float:
        return self.max_lon

    @property
    def west(self) -> float:
        return self.min_lon

    @property
    def width(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def height(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_lon + self.max_lon) / 2.0, (self.min_lat + self.max_lat) / 2.0)

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def nsew_key(self) -> tuple[float, float, float, float]:
        """
        Exact (north, south, east, west) tuple. No rounding: callers that cache on it
        want exact-match semantics.
        """
        return (self.north, self.south, self.east, self.west)

    def padded(self, ratio: float) -> "BBox":
        """Grow by `ratio` of width/height on every side."""
        dx = self.width * ratio
        dy = self.height * ratio
        return BBox(
            min_lon=self.min_lon - dx,
            min_lat=self.min_lat - dy,
            max_lon=self.max_lon + dx,
            max_lat=self.max_lat + dy,
        )

    def contains_point(self, lon: float, lat: float) -> bool:
        # Inclusive edges: a vertex sitting on the boundary counts as inside.
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def contains(self, other: "BBox") -> bool:
        return (
            self.min_lon <= other.min_lon
            and self.min_lat <= other.min_lat
            and self.max_lon >= other.max_lon
            and self.max_lat >= other.max_lat
        )

    def intersection(self, other: "BBox") -> "BBox | None":
        w = max(self.min_lon, other.min_lon)
        s = max(self.min_lat, other.min_lat)
        e = min(self.max_lon, other.max_lon)
        n = min(self.max_lat, other.max_lat)
        if w >= e or s >= n:
            return None
        return BBox(min_lon=w, min_lat=s, max_lon=e, max_lat=n)

    def overlap_fraction(self, other: "BBox") -> float:
        """
        Share of *this* box's area covered by `other` (0.0 - 1.0).
        """
        inter = self.intersection(other)
        if inter is None:
            return 0.0
        own = self.area
        if own <= 0.0:
            return 0.0
        return inter.area / own

    def as_wsen(self) -> list[float]:
        """[west, south, east, north] as used by the clusters API."""
        return [self.min_lon, self.min_lat, self.max_lon, self.max_lat]
