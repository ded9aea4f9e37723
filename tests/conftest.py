import os
import tempfile

# Point the module-level engine at a throwaway file before anything imports core.database
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mkdtemp()}/dangerzones-test.db")

from datetime import datetime

import pytest

from core.clustering import ClusteringEngine
from core.database import get_engine, init_db, make_session_factory
from core.domain import Category, DangerPoint
from core.geo import to_lat_lon
from core.point_store import DangerPointStore

CENTER = (25.0330, 121.5654)


@pytest.fixture
def session_factory(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path}/points.db")
    init_db(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return DangerPointStore(session_factory, max_points_per_user=10)


@pytest.fixture
def zone_engine(session_factory):
    return ClusteringEngine(session_factory)


def offset(dx_m: float, dy_m: float, origin=CENTER):
    """(lat, lng) dx_m east and dy_m north of origin."""
    return to_lat_lon(dx_m, dy_m, origin)


@pytest.fixture
def make_point():
    def factory(point_id: int, dx_m: float, dy_m: float, alpha: float = 1.0, category=Category.LIGHT, owner="u"):
        lat, lng = offset(dx_m, dy_m)
        return DangerPoint(
            id=point_id,
            report_id=f"r-{point_id}",
            owner_id=owner,
            lat=lat,
            lng=lng,
            category=category,
            observed_at=datetime(2025, 11, 8, 23, 8),
            alpha=alpha,
            created_at=point_id,
        )

    return factory
