"""Async HTTP client for the parcel zoning service."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from clustering.types import ClusterCell
from errors import ZoningAppError
from geo.aoi import BBox

from client.config import api_base_url, api_timeout_s

logger = logging.getLogger(__name__)


class ApiError(ZoningAppError):
    """A request to the zoning service failed (transport, timeout or non-2xx)."""

    code = "api_error"
    status = 502

    def __init__(self, message: str, *, status_code: int | None = None, error_code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class ParcelApi(Protocol):
    async def fetch_clusters(self, bounds: BBox, zoom: float) -> list[ClusterCell]: ...

    async def fetch_parcels(self, bounds: BBox) -> list[dict[str, Any]]: ...


class ParcelApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url or api_base_url(),
            timeout=httpx.Timeout(timeout_s if timeout_s is not None else api_timeout_s()),
            transport=transport,
        )

    # -- public API ----------------------------------------------------------

    async def fetch_clusters(self, bounds: BBox, zoom: float) -> list[ClusterCell]:
        params = {**_nsew_params(bounds), "zoom": zoom}
        data = await self._request("GET", "/api/parcels/clusters", params=params)
        try:
            return [cluster_from_api(c) for c in data or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed cluster response: {e}") from e

    async def fetch_parcels(self, bounds: BBox) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/parcels/geojson/bounds", params=_nsew_params(bounds))
        return list((data or {}).get("features") or [])

    async def fetch_all_parcels(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/parcels/geojson")
        return list((data or {}).get("features") or [])

    async def update_zoning(
        self,
        parcel_ids: list[int],
        zoning_type: str,
        zoning_sub_type: str,
        username: str | None = None,
    ) -> dict[str, Any]:
        payload = {
            "parcelIds": list(parcel_ids),
            "zoningType": zoning_type,
            "zoningSubType": zoning_sub_type,
            "username": username,
        }
        return await self._request("POST", "/api/parcels/update-zoning", json=payload)

    async def statistics(self) -> dict[str, int]:
        return await self._request("GET", "/api/parcels/statistics")

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ParcelApiClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- internals -----------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("Request %s %s timed out", method, url)
            raise ApiError(f"{method} {url} timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, url, e)
            raise ApiError(f"{method} {url} failed: {e}") from e

        if resp.status_code >= 400:
            message, error_code = _error_details(resp)
            logger.warning("Request %s %s returned %d: %s", method, url, resp.status_code, message)
            raise ApiError(message, status_code=resp.status_code, error_code=error_code)
        return resp.json()


def cluster_from_api(raw: dict[str, Any]) -> ClusterCell:
    lon, lat = raw["center"]
    w, s, e, n = raw["bounds"]
    return ClusterCell(
        center=(float(lon), float(lat)),
        count=int(raw["count"]),
        bounds=BBox(min_lon=float(w), min_lat=float(s), max_lon=float(e), max_lat=float(n)),
        zoning_breakdown={str(k): int(v) for k, v in (raw.get("zoningBreakdown") or {}).items()},
    )


def _nsew_params(bounds: BBox) -> dict[str, float]:
    return {"north": bounds.north, "south": bounds.south, "east": bounds.east, "west": bounds.west}


def _error_details(resp: httpx.Response) -> tuple[str, str | None]:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}", None
    if isinstance(body, dict):
        return str(body.get("message") or f"HTTP {resp.status_code}"), body.get("code")
    return f"HTTP {resp.status_code}", None
