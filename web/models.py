from core.clustering import ClusteringEngine
from core.database import SessionLocal
from core.point_store import DangerPointStore

# Global instances, created once per process
point_store = DangerPointStore(SessionLocal)
zone_engine = ClusteringEngine(SessionLocal)


def get_point_store() -> DangerPointStore:
    return point_store


def get_zone_engine() -> ClusteringEngine:
    return zone_engine
