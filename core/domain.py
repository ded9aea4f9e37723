import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from core.errors import InvalidArgument


class Category(str, Enum):
    LIGHT = "light"
    FEW = "few"
    MONITOR = "monitor"
    DANGEROUS = "dangerous"

    @classmethod
    def parse(cls, value) -> "Category":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise InvalidArgument(f"Type must be one of: {allowed}") from None


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Mobile clients send microseconds after a colon: 2025-11-08T23:08:00:000000
_COLON_MICROS = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}):(\d{6})$")


def parse_observed_at(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        match = _COLON_MICROS.match(text)
        if match:
            text = f"{match.group(1)}.{match.group(2)}"
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidArgument(f"Invalid time format: {value!r}") from None
    else:
        raise InvalidArgument("time must be a non-empty timestamp string")
    # stored naive, in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def alpha_for_count(count: int) -> float:
    return 1.0 / count if count > 0 else 0.0


@dataclass
class Identity:
    owner_id: str
    display_name: str
    active_report_count: int
    created_at: int


@dataclass
class DangerPoint:
    id: int
    report_id: str
    owner_id: str
    lat: float
    lng: float
    category: Category
    observed_at: datetime
    alpha: float
    created_at: int


@dataclass
class OwnerReports:
    owner_id: str
    points: List[DangerPoint]

    @property
    def count(self) -> int:
        return len(self.points)

    @property
    def total_alpha(self) -> float:
        return math.fsum(p.alpha for p in self.points)


@dataclass
class RemovalResult:
    owner_id: str
    report_id: str
    remaining_points: int
    new_alpha: float


@dataclass(frozen=True)
class ClusterId:
    """
    Parent DBSCAN cluster plus the group index when the parent was split.
    Kept as a pair so no arithmetic encoding can collide.
    """

    parent: int
    group: Optional[int] = None

    def __str__(self):
        if self.group is None:
            return str(self.parent)
        return f"{self.parent}.{self.group}"

    def _sort_key(self):
        return (self.parent, -1 if self.group is None else self.group)

    def __lt__(self, other):
        return self._sort_key() < other._sort_key()


@dataclass(frozen=True)
class ZoneParams:
    lat: float
    lng: float
    radius: float
    eps: float
    min_points: int
    max_cluster_size: int


@dataclass
class ZoneCluster:
    cluster_id: ClusterId
    point_count: int
    alpha_sum: float
    lat: float
    lng: float
    risk_level: RiskLevel
    type_counts: Dict[str, int]
    point_ids: List[int] = field(default_factory=list)


@dataclass
class NoisePoint:
    id: int
    lat: float
    lng: float
    alpha: float
    category: Category


@dataclass
class ZoneResult:
    params: ZoneParams
    total_points_in_range: int
    clusters: List[ZoneCluster]
    noise_points: List[NoisePoint]

    @property
    def clusters_alpha_sum(self) -> float:
        return math.fsum(c.alpha_sum for c in self.clusters)

    @property
    def noise_alpha_sum(self) -> float:
        return math.fsum(p.alpha for p in self.noise_points)

    @property
    def total_alpha_sum(self) -> float:
        return math.fsum((self.clusters_alpha_sum, self.noise_alpha_sum))
