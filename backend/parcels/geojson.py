from __future__ import annotations

from typing import Any, Iterable

from parcels.types import ATTRIBUTE_FIELDS, Parcel


def parcel_feature(parcel: Parcel) -> dict[str, Any]:
    props: dict[str, Any] = {"id": parcel.id}
    for k in ATTRIBUTE_FIELDS:
        props[k] = parcel.props.get(k)
    return {
        "type": "Feature",
        "id": parcel.id,
        "geometry": parcel.geometry.to_geojson(),
        "properties": props,
    }


def feature_collection(parcels: Iterable[Parcel]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [parcel_feature(p) for p in parcels],
    }


def feature_id(feature: dict[str, Any]) -> int | None:
    """
    Parcel id of a GeoJSON feature: top-level `id`, else `properties.id`.
    """
    raw = feature.get("id")
    if raw is None:
        raw = (feature.get("properties") or {}).get("id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
