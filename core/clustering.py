import logging
import math
from typing import List, Sequence

import numpy as np
from sklearn.neighbors import BallTree
from sqlalchemy.exc import SQLAlchemyError

from core.config import DEFAULT_MAX_CLUSTER_SIZE
from core.domain import (
    Category,
    ClusterId,
    DangerPoint,
    NoisePoint,
    RiskLevel,
    ZoneCluster,
    ZoneParams,
    ZoneResult,
)
from core.errors import InvalidArgument, StorageFailure
from core.geo import to_lat_lon, to_local_xy, validate_lat_lng
from core.repository import point_to_domain, points_in_range

logger = logging.getLogger(__name__)

NOISE = -1

# (exclusive lower bound on alpha sum, level), checked top-down
RISK_THRESHOLDS = (
    (5.0, RiskLevel.CRITICAL),
    (2.0, RiskLevel.HIGH),
    (1.0, RiskLevel.MEDIUM),
)


def classify_risk(alpha_sum: float) -> RiskLevel:
    for threshold, level in RISK_THRESHOLDS:
        if alpha_sum > threshold:
            return level
    return RiskLevel.LOW


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def resolve_params(
    lat: float,
    lng: float,
    radius: float,
    eps: float | None = None,
    min_points: int | None = None,
    max_cluster_size: int | None = None,
) -> ZoneParams:
    validate_lat_lng(lat, lng)
    if not (radius > 0) or math.isinf(radius):
        raise InvalidArgument("radius must be positive")
    if eps is not None and (not (eps > 0) or math.isinf(eps)):
        raise InvalidArgument("eps must be positive")
    if min_points is not None and (not _is_int(min_points) or min_points < 1):
        raise InvalidArgument("minpoints must be an integer >= 1")
    if max_cluster_size is not None and (not _is_int(max_cluster_size) or max_cluster_size < 1):
        raise InvalidArgument("maxPointsPerCluster must be an integer >= 1")

    return ZoneParams(
        lat=lat,
        lng=lng,
        radius=radius,
        eps=eps if eps is not None else max(50.0, min(300.0, radius / 5)),
        min_points=min_points if min_points is not None else (5 if radius > 1000 else 3),
        max_cluster_size=max_cluster_size if max_cluster_size is not None else DEFAULT_MAX_CLUSTER_SIZE,
    )


def dbscan_labels(xy: np.ndarray, eps: float, min_points: int) -> List[int]:
    """
    Density clustering over planar coordinates (metres).
    A point is core when at least min_points OTHER points lie within eps.
    Clusters are numbered in discovery order; a border point belongs to the first cluster that reaches it.
    """
    n = len(xy)
    labels = [NOISE] * n
    if n == 0:
        return labels

    # BallTree keeps memory linear in the number of neighbour pairs
    tree = BallTree(xy)
    neighbors = [
        sorted(int(j) for j in found if j != i)
        for i, found in enumerate(tree.query_radius(xy, r=eps))
    ]
    is_core = [len(nb) >= min_points for nb in neighbors]

    visited = [False] * n
    cluster_id = 0
    for i in range(n):
        if visited[i] or not is_core[i]:
            continue
        visited[i] = True
        labels[i] = cluster_id
        queue = list(neighbors[i])
        head = 0
        while head < len(queue):
            j = queue[head]
            head += 1
            if labels[j] == NOISE:
                labels[j] = cluster_id
            if visited[j]:
                continue
            visited[j] = True
            if is_core[j]:
                queue.extend(k for k in neighbors[j] if not visited[k])
        cluster_id += 1
    return labels


def split_cluster(parent: int, members: Sequence[int], max_cluster_size: int):
    """Consecutive groups of at most max_cluster_size; ids stay the parent's when no split is needed."""
    if len(members) <= max_cluster_size:
        return [(ClusterId(parent), list(members))]
    return [
        (ClusterId(parent, group), list(members[start:start + max_cluster_size]))
        for group, start in enumerate(range(0, len(members), max_cluster_size))
    ]


def summarize_cluster(cluster_id: ClusterId, points: Sequence[DangerPoint], origin: tuple[float, float]) -> ZoneCluster:
    xs, ys = zip(*(to_local_xy(p.lat, p.lng, origin) for p in points))
    centroid_lat, centroid_lng = to_lat_lon(sum(xs) / len(xs), sum(ys) / len(ys), origin)
    type_counts = {c.value: 0 for c in Category}
    for p in points:
        type_counts[p.category.value] += 1
    alpha_sum = math.fsum(p.alpha for p in points)
    return ZoneCluster(
        cluster_id=cluster_id,
        point_count=len(points),
        alpha_sum=alpha_sum,
        lat=centroid_lat,
        lng=centroid_lng,
        risk_level=classify_risk(alpha_sum),
        type_counts=type_counts,
        point_ids=[p.id for p in points],
    )


def cluster_points(candidates: Sequence[DangerPoint], params: ZoneParams) -> ZoneResult:
    """Pure clustering step over an already range-filtered candidate set."""
    candidates = sorted(candidates, key=lambda p: p.id)
    origin = (params.lat, params.lng)
    if candidates:
        xy = np.array([to_local_xy(p.lat, p.lng, origin) for p in candidates], dtype=float)
    else:
        xy = np.empty((0, 2), dtype=float)
    labels = dbscan_labels(xy, params.eps, params.min_points)

    members: dict[int, List[int]] = {}
    for idx, label in enumerate(labels):
        if label != NOISE:
            members.setdefault(label, []).append(idx)

    clusters: List[ZoneCluster] = []
    for parent in sorted(members):
        for cluster_id, group in split_cluster(parent, members[parent], params.max_cluster_size):
            clusters.append(summarize_cluster(cluster_id, [candidates[i] for i in group], origin))
    clusters.sort(key=lambda c: c.cluster_id)
    clusters.sort(key=lambda c: c.alpha_sum, reverse=True)

    noise = [
        NoisePoint(id=p.id, lat=p.lat, lng=p.lng, alpha=p.alpha, category=p.category)
        for p, label in zip(candidates, labels)
        if label == NOISE
    ]
    noise.sort(key=lambda p: p.alpha, reverse=True)

    return ZoneResult(
        params=params,
        total_points_in_range=len(candidates),
        clusters=clusters,
        noise_points=noise,
    )


class ClusteringEngine:
    """Read-only: pulls a snapshot of points around the query center and clusters it in memory."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def load_candidates(self, params: ZoneParams) -> List[DangerPoint]:
        try:
            with self.session_factory() as session:
                rows = points_in_range(session, params.lat, params.lng, params.radius)
                return [point_to_domain(p) for p in rows]
        except SQLAlchemyError:
            logger.exception("Storage failure while loading points around (%s, %s)", params.lat, params.lng)
            raise StorageFailure("Storage temporarily unavailable, please retry") from None

    def query(
        self,
        lat: float,
        lng: float,
        radius: float,
        eps: float | None = None,
        min_points: int | None = None,
        max_cluster_size: int | None = None,
    ) -> ZoneResult:
        params = resolve_params(lat, lng, radius, eps, min_points, max_cluster_size)
        result = cluster_points(self.load_candidates(params), params)
        logger.info(
            "Danger zones at (%.5f, %.5f) r=%.0fm eps=%.1f minpts=%d: %d points, %d clusters, %d noise",
            lat,
            lng,
            radius,
            params.eps,
            params.min_points,
            result.total_points_in_range,
            len(result.clusters),
            len(result.noise_points),
        )
        return result
