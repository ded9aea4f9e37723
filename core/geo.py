import math

from core.config import GRID_SIZE
from core.errors import InvalidArgument

EARTH_RADIUS_M = 6371000.0


def validate_lat_lng(lat: float, lng: float):
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        raise InvalidArgument(f"Invalid coordinate range: lat={lat}, lng={lng}")


def meters_per_degree(lat_deg: float) -> tuple[float, float]:
    lat_rad = math.radians(lat_deg)
    m_per_lat = 111132.954 - 559.822 * math.cos(2 * lat_rad) + 1.175 * math.cos(4 * lat_rad)
    m_per_lon = (math.pi / 180) * 6367449 * math.cos(lat_rad)
    return m_per_lat, m_per_lon


def to_local_xy(lat: float, lon: float, origin: tuple[float, float]) -> tuple[float, float]:
    m_per_lat, m_per_lon = meters_per_degree(origin[0])
    dx = (lon - origin[1]) * m_per_lon
    dy = (lat - origin[0]) * m_per_lat
    return dx, dy


def to_lat_lon(x: float, y: float, origin: tuple[float, float]) -> tuple[float, float]:
    m_per_lat, m_per_lon = meters_per_degree(origin[0])
    lat = origin[0] + y / m_per_lat
    lon = origin[1] + x / m_per_lon
    return lat, lon


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(lat: float, lon: float, radius_m: float) -> tuple[float, float, float, float]:
    """
    Lat/lon box that fully contains the circle of radius_m around (lat, lon).
    Used as a cheap indexed prefilter before the exact haversine check.
    """
    d_lat = math.degrees(radius_m / EARTH_RADIUS_M)
    min_lat = max(-90.0, lat - d_lat)
    max_lat = min(90.0, lat + d_lat)
    # Near the poles (or for huge radii) longitude no longer bounds anything
    cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    if cos_lat <= 1e-9 or radius_m >= EARTH_RADIUS_M * cos_lat * math.pi:
        return min_lat, max_lat, -180.0, 180.0
    d_lon = math.degrees(radius_m / (EARTH_RADIUS_M * cos_lat))
    min_lon = lon - d_lon
    max_lon = lon + d_lon
    if min_lon < -180.0 or max_lon > 180.0:
        # wraps the antimeridian; fall back to the full band
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, min_lon, max_lon


def grid_id_for_point(lat: float, lng: float, grid_size: float = GRID_SIZE) -> str:
    row = int(math.floor(lat / grid_size))
    col = int(math.floor(lng / grid_size))
    return f"{row}_{col}"


def grid_center(grid_id: str, grid_size: float = GRID_SIZE) -> tuple[float, float]:
    parts = grid_id.split("_")
    if len(parts) != 2:
        raise InvalidArgument(f"Invalid grid id: {grid_id!r}")
    try:
        row, col = int(parts[0]), int(parts[1])
    except ValueError:
        raise InvalidArgument(f"Invalid grid id: {grid_id!r}") from None
    return row * grid_size + grid_size / 2, col * grid_size + grid_size / 2
