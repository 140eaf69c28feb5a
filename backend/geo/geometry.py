from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal

from shapely.geometry import LineString, MultiPolygon, Point, Polygon

from errors import MalformedGeometry
from geo.aoi import BBox


GeometryKind = Literal["Polygon", "MultiPolygon", "Point", "LineString"]

Position = tuple[float, float]


@dataclass(frozen=True)
class Geometry:
    """
    Tagged geometry variant in EPSG:4326.

    Payload shape depends on `kind`:
    - Point:        [(lon, lat)]
    - LineString:   [[(lon, lat), ...]]
    - Polygon:      [ring, ...]            (first ring is the exterior)
    - MultiPolygon: [[ring, ...], ...]

    Operations dispatch on `kind` in the module-level functions below instead of
    living on per-type classes.
    """

    kind: GeometryKind
    coordinates: Any

    def to_geojson(self) -> dict[str, Any]:
        if self.kind == "Point":
            lon, lat = self.coordinates[0]
            return {"type": "Point", "coordinates": [lon, lat]}
        if self.kind == "LineString":
            return {"type": "LineString", "coordinates": [[x, y] for x, y in self.coordinates[0]]}
        if self.kind == "Polygon":
            return {"type": "Polygon", "coordinates": [_ring_out(r) for r in self.coordinates]}
        return {
            "type": "MultiPolygon",
            "coordinates": [[_ring_out(r) for r in poly] for poly in self.coordinates],
        }


def parse_geometry(raw: Any) -> Geometry:
    """
    Parse a GeoJSON geometry dict. Raises MalformedGeometry on anything unusable.
    """
    if not isinstance(raw, dict):
        raise MalformedGeometry("Geometry is missing or not an object")
    gtype = raw.get("type")
    coords = raw.get("coordinates")
    if not coords:
        raise MalformedGeometry(f"{gtype or 'Geometry'} has no coordinates")

    if gtype == "Point":
        return Geometry(kind="Point", coordinates=[_position(coords)])
    if gtype == "LineString":
        return Geometry(kind="LineString", coordinates=[_ring(coords)])
    if gtype == "Polygon":
        return Geometry(kind="Polygon", coordinates=_rings(coords))
    if gtype == "MultiPolygon":
        polys = [_rings(p) for p in coords]
        return Geometry(kind="MultiPolygon", coordinates=polys)
    raise MalformedGeometry(f"Unsupported geometry type: {gtype!r}")


def vertices(geom: Geometry) -> list[Position]:
    if geom.kind == "Point":
        return list(geom.coordinates)
    if geom.kind == "LineString":
        return list(geom.coordinates[0])
    if geom.kind == "Polygon":
        return [p for ring in geom.coordinates for p in ring]
    return [p for poly in geom.coordinates for ring in poly for p in ring]


def bounds(geom: Geometry) -> BBox:
    pts = vertices(geom)
    lons = [p[0] for p in pts]
    lats = [p[1] for p in pts]
    # Degenerate (zero-area) boxes are allowed here; only query bounds are validated.
    return BBox(min_lon=min(lons), min_lat=min(lats), max_lon=max(lons), max_lat=max(lats))


def intersects_bbox(geom: Geometry, bbox: BBox) -> bool:
    """
    Two-sided approximate test:
    - any vertex falls inside the box, or
    - the geometry's own bbox fully contains the box (large parcels spanning the view).

    Edge-only crossings without a vertex inside are deliberately not detected.
    """
    for lon, lat in vertices(geom):
        if bbox.contains_point(lon, lat):
            return True
    if geom.kind == "Point":
        return False
    return bounds(geom).contains(bbox)


def centroid(geom: Geometry) -> Position | None:
    """
    Area-weighted centroid via shapely; None when shapely cannot build a valid,
    non-empty shape (e.g. rings with fewer than 3 distinct vertices).
    """
    try:
        shape = _to_shapely(geom)
        if shape.is_empty:
            return None
        c = shape.centroid
        if c.is_empty:
            return None
        x, y = float(c.x), float(c.y)
    except Exception:
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return (x, y)


def representative_point(geom: Geometry) -> Position:
    """Centroid when available, otherwise the first vertex."""
    c = centroid(geom)
    if c is not None:
        return c
    return vertices(geom)[0]


def _to_shapely(geom: Geometry):
    if geom.kind == "Point":
        return Point(geom.coordinates[0])
    if geom.kind == "LineString":
        return LineString(geom.coordinates[0])
    if geom.kind == "Polygon":
        outer = _ensure_closed(geom.coordinates[0])
        holes = [_ensure_closed(r) for r in geom.coordinates[1:] if len(r) >= 3]
        return Polygon(outer, holes=holes or None)
    polys = []
    for rings in geom.coordinates:
        outer = _ensure_closed(rings[0])
        holes = [_ensure_closed(r) for r in rings[1:] if len(r) >= 3]
        polys.append(Polygon(outer, holes=holes or None))
    return MultiPolygon(polys)


def _position(p: Any) -> Position:
    try:
        if len(p) < 2:
            raise MalformedGeometry(f"Position needs lon and lat: {p!r}")
        lon, lat = float(p[0]), float(p[1])
    except (TypeError, ValueError) as e:
        raise MalformedGeometry(f"Non-numeric position: {p!r}") from e
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise MalformedGeometry(f"Non-finite position: {p!r}")
    return (lon, lat)


def _ring(ring: Any) -> list[Position]:
    if not isinstance(ring, (list, tuple)) or not ring:
        raise MalformedGeometry("Empty or non-list ring")
    return [_position(p) for p in ring]


def _rings(rings: Any) -> list[list[Position]]:
    if not isinstance(rings, (list, tuple)) or not rings:
        raise MalformedGeometry("Polygon has no rings")
    return [_ring(r) for r in rings]


def _ensure_closed(ring: list[Position]) -> list[Position]:
    if not ring:
        return ring
    if ring[0] != ring[-1]:
        return [*ring, ring[0]]
    return ring


def _ring_out(ring: list[Position]) -> list[list[float]]:
    return [[x, y] for x, y in ring]
