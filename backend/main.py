import logging
import math

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from api.config import cors_origins, log_level
from api.errors import install_error_handlers
from api.services import get_services
from errors import ValidationError
from geo.aoi import BBox
from parcels.geojson import feature_collection
from zoning.labels import get_vocabulary

logging.basicConfig(level=log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Parcel Zoning Map API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

MAX_ZOOM = 30


class ApiZoningUpdate(BaseModel):
    parcelIds: list[int] | None = None
    zoningType: str | None = None
    zoningSubType: str | None = None
    username: str | None = None


class ApiZoningUpdateResult(BaseModel):
    success: bool
    message: str
    updatedCount: int


class ApiCluster(BaseModel):
    center: list[float]
    count: int
    zoningBreakdown: dict[str, int]
    bounds: list[float]


class ApiAuditEntry(BaseModel):
    id: int
    timestamp: str
    action: str
    details: str | None = None
    username: str


@app.get("/api/parcels/geojson")
def parcels_geojson():
    return feature_collection(get_services().store.all_parcels())


@app.get("/api/parcels/geojson/bounds")
def parcels_geojson_in_bounds(
    north: float = Query(...),
    south: float = Query(...),
    east: float = Query(...),
    west: float = Query(...),
):
    bbox = BBox.from_nsew(north, south, east, west)
    return feature_collection(get_services().store.parcels_in_bounds(bbox))


@app.get("/api/parcels/clusters", response_model=list[ApiCluster])
def parcel_clusters(
    north: float = Query(...),
    south: float = Query(...),
    east: float = Query(...),
    west: float = Query(...),
    zoom: float = Query(...),
):
    bbox = BBox.from_nsew(north, south, east, west)
    if not math.isfinite(zoom) or zoom < 0 or zoom > MAX_ZOOM:
        raise ValidationError(f"Invalid zoom: {zoom} (expected 0-{MAX_ZOOM})")
    cells = get_services().clusters.get_or_compute(bbox, zoom)
    return [c.to_api() for c in cells]


@app.post("/api/parcels/update-zoning", response_model=ApiZoningUpdateResult)
def update_zoning(body: ApiZoningUpdate):
    result = get_services().mutator.apply(
        body.parcelIds,
        body.zoningType,
        body.zoningSubType,
        body.username,
    )
    return ApiZoningUpdateResult(
        success=True,
        message=f"Successfully updated zoning for {result.updated_count} parcels",
        updatedCount=result.updated_count,
    )


@app.get("/api/parcels/statistics")
def parcel_statistics() -> dict[str, int]:
    return get_services().store.zoning_statistics()


@app.get("/api/zoning/types")
def zoning_types():
    return get_vocabulary().model_dump()


@app.get("/api/audit/logs", response_model=list[ApiAuditEntry])
def audit_logs():
    return [e.to_api() for e in get_services().audit.all()]


@app.get("/api/audit/logs/user", response_model=list[ApiAuditEntry])
def audit_logs_by_user(username: str = Query(...)):
    return [e.to_api() for e in get_services().audit.by_actor(username)]


@app.get("/api/audit/logs/action", response_model=list[ApiAuditEntry])
def audit_logs_by_action(action: str = Query(...)):
    return [e.to_api() for e in get_services().audit.by_action(action)]
