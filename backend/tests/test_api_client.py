from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from client.api import ApiError, ParcelApiClient
from geo.aoi import BBox

VIEW = BBox(min_lon=10.0, min_lat=20.0, max_lon=10.5, max_lat=20.5)


def _client(handler) -> ParcelApiClient:
    return ParcelApiClient("http://zoning.test", transport=httpx.MockTransport(handler))


def test_fetch_clusters_sends_bounds_and_parses_cells():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json=[
                {
                    "center": [10.2, 20.3],
                    "count": 12,
                    "zoningBreakdown": {"Residential": 12, "Unknown": 0},
                    "bounds": [10.1, 20.2, 10.3, 20.4],
                }
            ],
        )

    async def run():
        async with _client(handler) as client:
            return await client.fetch_clusters(VIEW, 14)

    cells = asyncio.run(run())
    assert seen["path"] == "/api/parcels/clusters"
    assert float(seen["params"]["north"]) == 20.5
    assert float(seen["params"]["west"]) == 10.0
    assert float(seen["params"]["zoom"]) == 14
    assert len(cells) == 1
    assert cells[0].count == 12
    assert cells[0].bounds == BBox(min_lon=10.1, min_lat=20.2, max_lon=10.3, max_lat=20.4)


def test_fetch_parcels_returns_features():
    def handler(request):
        assert request.url.path == "/api/parcels/geojson/bounds"
        return httpx.Response(200, json={"type": "FeatureCollection", "features": [{"id": 1}]})

    async def run():
        async with _client(handler) as client:
            return await client.fetch_parcels(VIEW)

    assert asyncio.run(run()) == [{"id": 1}]


def test_fetch_all_parcels_reads_the_full_collection():
    paths = []

    def handler(request):
        paths.append((request.method, request.url.path, dict(request.url.params)))
        return httpx.Response(
            200,
            json={"type": "FeatureCollection", "features": [{"id": 1}, {"id": 2}]},
        )

    async def run():
        async with _client(handler) as client:
            return await client.fetch_all_parcels()

    assert asyncio.run(run()) == [{"id": 1}, {"id": 2}]
    assert paths == [("GET", "/api/parcels/geojson", {})]


def test_fetch_all_parcels_tolerates_an_empty_collection():
    def handler(request):
        return httpx.Response(200, json={"type": "FeatureCollection"})

    async def run():
        async with _client(handler) as client:
            return await client.fetch_all_parcels()

    assert asyncio.run(run()) == []


def test_statistics_returns_counts_per_zoning_type():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/api/parcels/statistics"
        return httpx.Response(200, json={"Residential": 15, "Commercial": 2})

    async def run():
        async with _client(handler) as client:
            return await client.statistics()

    assert asyncio.run(run()) == {"Residential": 15, "Commercial": 2}


def test_update_zoning_posts_body():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "message": "ok", "updatedCount": 2})

    async def run():
        async with _client(handler) as client:
            return await client.update_zoning([1, 2], "Commercial", "Office", "alice")

    assert asyncio.run(run())["updatedCount"] == 2
    assert bodies[0] == {
        "parcelIds": [1, 2],
        "zoningType": "Commercial",
        "zoningSubType": "Office",
        "username": "alice",
    }


def test_error_response_raises_api_error_with_code():
    def handler(request):
        return httpx.Response(409, json={"status": 409, "code": "partial_match", "message": "Updated 2 of 3"})

    async def run():
        async with _client(handler) as client:
            await client.update_zoning([1, 2, 3], "Commercial", "Office")

    with pytest.raises(ApiError) as ei:
        asyncio.run(run())
    assert ei.value.status_code == 409
    assert ei.value.error_code == "partial_match"
    assert ei.value.message == "Updated 2 of 3"


def test_transport_failure_raises_api_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async def run():
        async with _client(handler) as client:
            await client.fetch_parcels(VIEW)

    with pytest.raises(ApiError):
        asyncio.run(run())


def test_malformed_cluster_payload_raises_api_error():
    def handler(request):
        return httpx.Response(200, json=[{"count": 3}])

    async def run():
        async with _client(handler) as client:
            await client.fetch_clusters(VIEW, 14)

    with pytest.raises(ApiError):
        asyncio.run(run())
