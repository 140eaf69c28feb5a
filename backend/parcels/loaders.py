from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from errors import MalformedGeometry
from geo.aoi import BBox
from geo.geometry import intersects_bbox, parse_geometry
from parcels.types import ATTRIBUTE_FIELDS, Parcel, ParcelRecord

logger = logging.getLogger(__name__)


def load_geojson_records(path: Path) -> list[ParcelRecord]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return records_from_feature_collection(data)


def records_from_feature_collection(data: dict[str, Any]) -> list[ParcelRecord]:
    """
    Turn a GeoJSON FeatureCollection into storable records.

    Features without a usable integer id are skipped. Geometry is *not* validated here.
    """
    features = (data or {}).get("features") or []

    out: list[ParcelRecord] = []
    for i, feature in enumerate(features):
        feature = feature or {}
        props = feature.get("properties") or {}
        raw_id = feature.get("id", props.get("id"))
        try:
            pid = int(raw_id)
        except (TypeError, ValueError):
            logger.warning("Skipping feature #%d without integer id (%r)", i, raw_id)
            continue
        attrs = {k: _str_or_none(props.get(k)) for k in ATTRIBUTE_FIELDS}
        out.append(ParcelRecord(id=pid, geometry=feature.get("geometry"), props=attrs))
    return out


def parse_record(record: ParcelRecord) -> Parcel:
    geometry = record.geometry
    if isinstance(geometry, str):
        try:
            geometry = json.loads(geometry)
        except ValueError as e:
            raise MalformedGeometry(f"Parcel {record.id}: geometry is not valid JSON") from e
    return Parcel(id=record.id, geometry=parse_geometry(geometry), props=dict(record.props))


def parse_records(records: Iterable[ParcelRecord]) -> list[Parcel]:
    """Parse records, logging and skipping any with malformed geometry."""
    out: list[Parcel] = []
    for r in records:
        try:
            out.append(parse_record(r))
        except MalformedGeometry as e:
            logger.warning("Excluding parcel %s with malformed geometry: %s", r.id, e)
    return out


def select_in_bounds(records: Iterable[ParcelRecord], bbox: BBox) -> list[Parcel]:
    return [p for p in parse_records(records) if intersects_bbox(p.geometry, bbox)]


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)
