from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.assembler import assemble_zone_response
from core.clustering import ClusteringEngine
from web.models import get_zone_engine

router = APIRouter()


class DangerZonesRequest(BaseModel):
    lat: float
    lng: float
    radius: float
    eps: Optional[float] = None
    minpoints: Optional[int] = None
    max_points_per_cluster: Optional[int] = Field(default=None, alias="maxPointsPerCluster")
    time: Optional[str] = None  # accepted for client compatibility, not used for filtering


@router.post("/danger-zones")
def danger_zones_endpoint(body: DangerZonesRequest, engine: ClusteringEngine = Depends(get_zone_engine)):
    result = engine.query(
        body.lat,
        body.lng,
        body.radius,
        eps=body.eps,
        min_points=body.minpoints,
        max_cluster_size=body.max_points_per_cluster,
    )
    return assemble_zone_response(result)
