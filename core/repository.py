import time
import uuid
from datetime import datetime
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from core.db_models import DangerPointModel, IdentityModel
from core.domain import Category, DangerPoint, Identity
from core.geo import bounding_box, haversine_m


def now_ms() -> int:
    return int(time.time() * 1000)


def identity_to_domain(m: IdentityModel) -> Identity:
    return Identity(
        owner_id=m.owner_id,
        display_name=m.display_name,
        active_report_count=m.active_report_count,
        created_at=m.created_at,
    )


def point_to_domain(p: DangerPointModel) -> DangerPoint:
    return DangerPoint(
        id=p.id,
        report_id=p.report_id,
        owner_id=p.owner_id,
        lat=p.lat,
        lng=p.lng,
        category=Category(p.category),
        observed_at=p.observed_at,
        alpha=p.alpha,
        created_at=p.created_at,
    )


def get_identity(session: Session, owner_id: str, for_update: bool = False):
    stmt = select(IdentityModel).where(IdentityModel.owner_id == owner_id)
    if for_update:
        # no-op on SQLite, row lock on Postgres/MySQL
        stmt = stmt.with_for_update()
    return session.scalars(stmt).first()


def create_identity(session: Session, owner_id: str, display_name: str | None = None):
    identity = IdentityModel(
        owner_id=owner_id,
        display_name=display_name or "Unknown",
        active_report_count=0,
        created_at=now_ms(),
    )
    session.add(identity)
    session.flush()
    return identity


def count_points(session: Session, owner_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(DangerPointModel).where(DangerPointModel.owner_id == owner_id)
    )


def get_oldest_point(session: Session, owner_id: str):
    return session.scalars(
        select(DangerPointModel)
        .where(DangerPointModel.owner_id == owner_id)
        .order_by(DangerPointModel.created_at.asc(), DangerPointModel.id.asc())
    ).first()


def get_point_by_report_id(session: Session, report_id: str):
    return session.scalars(select(DangerPointModel).where(DangerPointModel.report_id == report_id)).first()


def insert_point(
    session: Session,
    owner_id: str,
    lat: float,
    lng: float,
    category: Category,
    observed_at: datetime,
    alpha: float,
):
    point = DangerPointModel(
        report_id=str(uuid.uuid4()),
        owner_id=owner_id,
        lat=lat,
        lng=lng,
        category=category.value,
        observed_at=observed_at,
        alpha=alpha,
        created_at=now_ms(),
    )
    session.add(point)
    session.flush()  # assigns the autoincrement id
    return point


def delete_point(session: Session, point_id: int):
    session.execute(delete(DangerPointModel).where(DangerPointModel.id == point_id))


def rewrite_alpha(session: Session, owner_id: str, alpha: float) -> int:
    result = session.execute(
        update(DangerPointModel)
        .where(DangerPointModel.owner_id == owner_id)
        .values(alpha=alpha)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


def list_points_by_owner(session: Session, owner_id: str) -> List[DangerPointModel]:
    return session.scalars(
        select(DangerPointModel)
        .where(DangerPointModel.owner_id == owner_id)
        .order_by(DangerPointModel.created_at.desc(), DangerPointModel.id.desc())
    ).all()


def points_in_range(session: Session, lat: float, lng: float, radius_m: float) -> List[DangerPointModel]:
    """
    Points within radius_m (great-circle) of (lat, lng), ordered by id.
    The lat/lng bounding box hits ix_danger_points_lat_lng; the haversine pass trims the corners.
    """
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_m)
    candidates = session.scalars(
        select(DangerPointModel)
        .where(
            DangerPointModel.lat >= min_lat,
            DangerPointModel.lat <= max_lat,
            DangerPointModel.lng >= min_lng,
            DangerPointModel.lng <= max_lng,
        )
        .order_by(DangerPointModel.id.asc())
    ).all()
    return [p for p in candidates if haversine_m(lat, lng, p.lat, p.lng) <= radius_m]
