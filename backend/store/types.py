from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Iterable, Protocol

from geo.aoi import BBox
from parcels.types import Parcel


class GeometryStore(Protocol):
    """
    Read side needed by the clustering engine.

    - DuckDBParcelStore: service storage
    - InMemoryParcelStore: client-side fallback clustering, tests
    """

    def parcels_in_bounds(self, bbox: BBox) -> list[Parcel]: ...


class ZoningTransaction(Protocol):
    def current_zoning(self, ids: Iterable[int]) -> dict[int, tuple[str | None, str | None]]: ...

    def update_zoning(self, ids: Iterable[int], zoning_type: str, zoning_sub_type: str) -> int: ...

    def execute(self, sql: str, params: list[Any] | None = None) -> None: ...


class ParcelStore(GeometryStore, Protocol):
    def all_parcels(self) -> list[Parcel]: ...

    def get_parcels(self, ids: Iterable[int]) -> list[Parcel]: ...

    def zoning_statistics(self) -> dict[str, int]: ...

    def transaction(self) -> AbstractContextManager[ZoningTransaction]: ...
