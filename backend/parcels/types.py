from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from geo.geometry import Geometry


# Attribute columns, in storage order. Names follow the source data set.
ATTRIBUTE_FIELDS: tuple[str, ...] = (
    "name",
    "owner",
    "mailadd",
    "mail_city",
    "mail_zip",
    "parcelnumb",
    "zoning",
    "zoning_typ",
    "zoning_sub",
)


@dataclass(frozen=True)
class ParcelRecord:
    """
    A parcel as persisted: geometry is kept raw (GeoJSON dict) and only parsed on read,
    so one bad row can be skipped without failing a whole query.
    """

    id: int
    geometry: Any
    props: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Parcel:
    id: int
    geometry: Geometry
    props: dict[str, Any] = field(default_factory=dict)

    @property
    def zoning_type(self) -> str | None:
        return self.props.get("zoning_typ")

    @property
    def zoning_sub_type(self) -> str | None:
        return self.props.get("zoning_sub")
