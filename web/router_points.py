from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from core.domain import Category, DangerPoint
from core.geo import grid_id_for_point
from core.point_store import DangerPointStore
from web.models import get_point_store

router = APIRouter()


class IdentityRequest(BaseModel):
    owner_id: str = Field(min_length=1)
    display_name: Optional[str] = None


class PointCreateRequest(BaseModel):
    owner_id: str = Field(min_length=1)
    time: str
    lat: float
    lng: float
    type: Category


class PointDeleteRequest(BaseModel):
    owner_id: str = Field(min_length=1)
    report_id: str = Field(min_length=1)


def report_to_dict(point: DangerPoint):
    return {
        "id": point.id,
        "report_id": point.report_id,
        "owner_id": point.owner_id,
        "lat": point.lat,
        "lng": point.lng,
        "alpha": point.alpha,
        "type": point.category.value,
        "time": point.observed_at.isoformat(),
        "grid_id": grid_id_for_point(point.lat, point.lng),
    }


@router.post("/identities", status_code=status.HTTP_201_CREATED)
def register_identity_endpoint(body: IdentityRequest, store: DangerPointStore = Depends(get_point_store)):
    identity = store.register(body.owner_id, body.display_name)
    return {
        "owner_id": identity.owner_id,
        "display_name": identity.display_name,
        "count": identity.active_report_count,
    }


@router.post("/points", status_code=status.HTTP_201_CREATED)
def create_point_endpoint(body: PointCreateRequest, store: DangerPointStore = Depends(get_point_store)):
    point = store.submit(body.owner_id, body.lat, body.lng, body.type, body.time)
    return report_to_dict(point)


@router.get("/points/{owner_id}")
def list_points_endpoint(owner_id: str, store: DangerPointStore = Depends(get_point_store)):
    reports = store.list_by_owner(owner_id)
    return {
        "count": reports.count,
        "total_alpha": reports.total_alpha,
        "data": [report_to_dict(p) for p in reports.points],
    }


@router.delete("/points")
def delete_point_endpoint(body: PointDeleteRequest, store: DangerPointStore = Depends(get_point_store)):
    result = store.remove(body.owner_id, body.report_id)
    return {
        "message": "Point deleted and alpha recalculated",
        "remaining_points": result.remaining_points,
        "new_alpha": result.new_alpha,
    }
