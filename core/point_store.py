import logging
import threading
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from core.config import MAX_POINTS_PER_USER
from core.database import run_with_retry
from core.domain import (
    Category,
    DangerPoint,
    Identity,
    OwnerReports,
    RemovalResult,
    alpha_for_count,
    parse_observed_at,
)
from core.errors import InvalidArgument, NotFound, PermissionDenied, StorageFailure
from core.geo import validate_lat_lng
from core.repository import (
    count_points,
    create_identity,
    delete_point,
    get_identity,
    get_oldest_point,
    get_point_by_report_id,
    identity_to_domain,
    insert_point,
    list_points_by_owner,
    point_to_domain,
    rewrite_alpha,
)

logger = logging.getLogger(__name__)


class OwnerLocks:
    """
    One lock per owner id, created on demand and dropped once nobody holds or waits on it.
    Mutations for different owners never block each other.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # owner_id -> [lock, users]

    @contextmanager
    def hold(self, owner_id: str):
        with self._guard:
            entry = self._locks.setdefault(owner_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[owner_id]

    def __len__(self):
        with self._guard:
            return len(self._locks)


def _require_owner(owner_id) -> str:
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise InvalidArgument("owner id must be a non-empty string")
    return owner_id.strip()


class DangerPointStore:
    """
    Owns danger point lifecycle: admission, oldest-first eviction and the per-owner alpha weight.
    Every mutation is one transaction; a failure leaves the owner's count and alpha untouched.
    """

    def __init__(self, session_factory, max_points_per_user: int = MAX_POINTS_PER_USER):
        if max_points_per_user < 1:
            raise ValueError("max_points_per_user must be >= 1")
        self.session_factory = session_factory
        self.max_points_per_user = max_points_per_user
        self.locks = OwnerLocks()

    def _transaction(self, owner_id: str, fn, action: str):
        def attempt():
            with self.session_factory() as session:
                try:
                    result = fn(session)
                    session.commit()
                except Exception:
                    session.rollback()
                    raise
                return result

        with self.locks.hold(owner_id):
            try:
                return run_with_retry(attempt)
            except SQLAlchemyError:
                logger.exception("Storage failure during %s for owner %s", action, owner_id)
                raise StorageFailure("Storage temporarily unavailable, please retry") from None

    def _read(self, fn, action: str):
        try:
            with self.session_factory() as session:
                return fn(session)
        except SQLAlchemyError:
            logger.exception("Storage failure during %s", action)
            raise StorageFailure("Storage temporarily unavailable, please retry") from None

    @staticmethod
    def _ensure_identity(session, owner_id: str, display_name: str | None = None):
        identity = get_identity(session, owner_id, for_update=True)
        if identity is None:
            identity = create_identity(session, owner_id, display_name)
            logger.info("Created identity %s", owner_id)
        return identity

    def register(self, owner_id: str, display_name: str | None = None) -> Identity:
        owner_id = _require_owner(owner_id)

        def work(session):
            identity = self._ensure_identity(session, owner_id, display_name)
            if display_name and identity.display_name != display_name:
                identity.display_name = display_name
            return identity_to_domain(identity)

        return self._transaction(owner_id, work, "register")

    def get_identity(self, owner_id: str) -> Identity | None:
        owner_id = _require_owner(owner_id)

        def work(session):
            identity = get_identity(session, owner_id)
            return identity_to_domain(identity) if identity else None

        return self._read(work, "get_identity")

    def submit(self, owner_id: str, lat: float, lng: float, category, observed_at) -> DangerPoint:
        owner_id = _require_owner(owner_id)
        validate_lat_lng(lat, lng)
        category = Category.parse(category)
        observed = parse_observed_at(observed_at)

        def work(session):
            identity = self._ensure_identity(session, owner_id)
            count = count_points(session, owner_id)
            while count >= self.max_points_per_user:
                oldest = get_oldest_point(session, owner_id)
                if oldest is None:
                    break
                delete_point(session, oldest.id)
                count -= 1
                logger.info("Evicted report %s (id=%s) of owner %s", oldest.report_id, oldest.id, owner_id)

            count += 1
            alpha = alpha_for_count(count)
            point = insert_point(session, owner_id, lat, lng, category, observed, alpha)
            identity.active_report_count = count
            rewritten = rewrite_alpha(session, owner_id, alpha)
            logger.debug("Owner %s alpha=%.4f rewritten on %d points", owner_id, alpha, rewritten)
            point.alpha = alpha
            return point_to_domain(point)

        return self._transaction(owner_id, work, "submit")

    def list_by_owner(self, owner_id: str) -> OwnerReports:
        owner_id = _require_owner(owner_id)

        def work(session):
            return OwnerReports(
                owner_id=owner_id,
                points=[point_to_domain(p) for p in list_points_by_owner(session, owner_id)],
            )

        return self._read(work, "list_by_owner")

    def remove(self, owner_id: str, report_id: str) -> RemovalResult:
        owner_id = _require_owner(owner_id)
        if not isinstance(report_id, str) or not report_id:
            raise InvalidArgument("report id must be a non-empty string")

        def work(session):
            point = get_point_by_report_id(session, report_id)
            if point is None:
                raise NotFound("Point not found")
            if point.owner_id != owner_id:
                raise PermissionDenied("Point does not belong to this user")

            identity = get_identity(session, owner_id, for_update=True)
            delete_point(session, point.id)
            remaining = count_points(session, owner_id)
            if identity is not None:
                identity.active_report_count = max(0, remaining)
            alpha = alpha_for_count(remaining)
            if remaining > 0:
                rewrite_alpha(session, owner_id, alpha)
            logger.info("Removed report %s of owner %s, %d remaining", report_id, owner_id, remaining)
            return RemovalResult(
                owner_id=owner_id,
                report_id=report_id,
                remaining_points=remaining,
                new_alpha=alpha,
            )

        return self._transaction(owner_id, work, "remove")
