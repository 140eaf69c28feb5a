from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from api.services import reset_services
from main import app
from factories import parcel_feature, row_of_parcels

NSEW = {"north": 20.01, "south": 20.0, "east": 10.01, "west": 10.0}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    features = row_of_parcels(15) + [parcel_feature(100, 10.005, 20.005, zoning_typ=None, zoning_sub=None)]
    seed = tmp_path / "parcels.geojson"
    seed.write_text(json.dumps({"type": "FeatureCollection", "features": features}), encoding="utf-8")
    monkeypatch.setenv("ZONING_DB_PATH", str(tmp_path / "parcels.duckdb"))
    monkeypatch.setenv("ZONING_SEED_GEOJSON", str(seed))
    reset_services()
    yield TestClient(app)
    reset_services()


def test_parcels_in_bounds(client):
    resp = client.get("/api/parcels/geojson/bounds", params=NSEW)
    assert resp.status_code == 200
    body = resp.json()
    assert body["type"] == "FeatureCollection"
    assert len(body["features"]) == 16

    resp = client.get("/api/parcels/geojson")
    assert len(resp.json()["features"]) == 16


def test_clusters(client):
    resp = client.get("/api/parcels/clusters", params={**NSEW, "zoom": 16})
    assert resp.status_code == 200
    cells = resp.json()
    assert len(cells) == 1
    assert cells[0]["count"] == 15
    assert cells[0]["zoningBreakdown"]["Residential"] == 15
    assert len(cells[0]["bounds"]) == 4


@pytest.mark.parametrize(
    "params",
    [
        {**NSEW, "north": 19.0},
        {**NSEW, "east": 9.0},
        {"north": 20.01, "south": 20.0, "east": 10.01},
        {**NSEW, "north": "abc"},
    ],
)
def test_invalid_bounds_are_rejected(client, params):
    resp = client.get("/api/parcels/geojson/bounds", params=params)
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["status"] == 400
    assert body["error"] == "Bad Request"
    assert body["path"] == "/api/parcels/geojson/bounds"
    assert {"timestamp", "message"} <= set(body)


def test_invalid_zoom_is_rejected(client):
    resp = client.get("/api/parcels/clusters", params={**NSEW, "zoom": 99})
    assert resp.status_code == 400


def test_update_zoning_invalidates_clusters(client):
    before = client.get("/api/parcels/clusters", params={**NSEW, "zoom": 16}).json()
    assert before[0]["zoningBreakdown"]["Commercial"] == 0

    resp = client.post(
        "/api/parcels/update-zoning",
        json={"parcelIds": [1, 2, 3], "zoningType": "Commercial", "zoningSubType": "Office", "username": "alice"},
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["updatedCount"] == 3

    after = client.get("/api/parcels/clusters", params={**NSEW, "zoom": 16}).json()
    assert after[0]["zoningBreakdown"]["Commercial"] == 3
    assert after[0]["zoningBreakdown"]["Residential"] == 12


def test_partial_update_reports_conflict_but_keeps_matched_rows(client):
    resp = client.post(
        "/api/parcels/update-zoning",
        json={"parcelIds": [1, 2, 999], "zoningType": "Planned", "zoningSubType": "Planned Development"},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "partial_match"
    assert body["requestedCount"] == 3
    assert body["updatedCount"] == 2

    stats = client.get("/api/parcels/statistics").json()
    assert stats["Planned"] == 2


def test_update_with_no_ids_is_a_validation_error(client):
    resp = client.post(
        "/api/parcels/update-zoning",
        json={"parcelIds": [], "zoningType": "Commercial", "zoningSubType": "Office"},
    )
    assert resp.status_code == 400
    assert client.get("/api/audit/logs").json() == []


def test_update_unknown_ids_is_not_found(client):
    resp = client.post(
        "/api/parcels/update-zoning",
        json={"parcelIds": [998], "zoningType": "Commercial", "zoningSubType": "Office"},
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_statistics_and_audit_queries(client):
    stats = client.get("/api/parcels/statistics").json()
    assert stats == {"Residential": 15, "Unknown": 1}

    client.post(
        "/api/parcels/update-zoning",
        json={"parcelIds": [5], "zoningType": "Commercial", "zoningSubType": "Retail Commercial", "username": "bob"},
    )
    logs = client.get("/api/audit/logs").json()
    assert [e["action"] for e in logs] == ["ZONING_UPDATE_REQUEST", "ZONING_UPDATE_SUCCESS"]

    by_user = client.get("/api/audit/logs/user", params={"username": "bob"}).json()
    assert len(by_user) == 2
    by_action = client.get("/api/audit/logs/action", params={"action": "ZONING_UPDATE_SUCCESS"}).json()
    assert len(by_action) == 1
    assert by_action[0]["username"] == "bob"

    assert client.get("/api/audit/logs/user", params={"username": " "}).status_code == 400


def test_zoning_types(client):
    body = client.get("/api/zoning/types").json()
    assert [t["label"] for t in body["types"]] == ["Residential", "Commercial", "Planned"]
    assert body["unknownLabel"] == "Unknown"
