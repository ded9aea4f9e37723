import math

import pytest

from core.errors import InvalidArgument
from core.geo import (
    EARTH_RADIUS_M,
    bounding_box,
    grid_center,
    grid_id_for_point,
    haversine_m,
    to_lat_lon,
    to_local_xy,
    validate_lat_lng,
)


def test_haversine_one_degree_of_latitude():
    d = haversine_m(0.0, 0.0, 1.0, 0.0)
    assert 111000 < d < 111400
    assert haversine_m(25.03, 121.56, 25.03, 121.56) == 0.0


def test_local_projection_matches_haversine_for_short_distances():
    origin = (25.033, 121.5654)
    lat, lon = to_lat_lon(120.0, -80.0, origin)
    x, y = to_local_xy(lat, lon, origin)
    assert x == pytest.approx(120.0, abs=1e-6)
    assert y == pytest.approx(-80.0, abs=1e-6)
    assert haversine_m(origin[0], origin[1], lat, lon) == pytest.approx((120.0**2 + 80.0**2) ** 0.5, rel=5e-3)


def test_bounding_box_contains_circle():
    lat, lon, r = 25.033, 121.5654, 500.0
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, r)
    d_lat = math.degrees(0.999 * r / EARTH_RADIUS_M)
    d_lon = math.degrees(0.999 * r / (EARTH_RADIUS_M * math.cos(math.radians(lat))))
    for p_lat, p_lon in [(lat + d_lat, lon), (lat - d_lat, lon), (lat, lon + d_lon), (lat, lon - d_lon)]:
        assert haversine_m(lat, lon, p_lat, p_lon) <= r
        assert min_lat <= p_lat <= max_lat
        assert min_lon <= p_lon <= max_lon


def test_bounding_box_near_antimeridian_falls_back_to_full_band():
    _, _, min_lon, max_lon = bounding_box(10.0, 179.999, 5000.0)
    assert (min_lon, max_lon) == (-180.0, 180.0)


def test_grid_id_and_center():
    assert grid_id_for_point(25.4, 121.7, grid_size=1.0) == "25_121"
    assert grid_id_for_point(-0.5, -0.5, grid_size=1.0) == "-1_-1"
    assert grid_center("25_121", grid_size=1.0) == (25.5, 121.5)
    assert grid_center("-1_-1", grid_size=1.0) == (-0.5, -0.5)

    lat, lng = 25.0330, 121.5654
    c_lat, c_lng = grid_center(grid_id_for_point(lat, lng, 0.01), 0.01)
    assert abs(c_lat - lat) <= 0.005 + 1e-9
    assert abs(c_lng - lng) <= 0.005 + 1e-9


def test_grid_center_rejects_malformed_ids():
    with pytest.raises(InvalidArgument):
        grid_center("abc")
    with pytest.raises(InvalidArgument):
        grid_center("1_2_3")


@pytest.mark.parametrize("lat,lng", [(91, 0), (-90.1, 0), (0, 180.5), (0, -181), (float("nan"), 0)])
def test_validate_lat_lng_rejects_out_of_range(lat, lng):
    with pytest.raises(InvalidArgument):
        validate_lat_lng(lat, lng)
