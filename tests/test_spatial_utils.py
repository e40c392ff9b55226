import math

import pytest

from core.spatial import (
    BBOX_OVERLAP_TOLERANCE_DEG,
    GeometryService,
    clean_polyline,
)


def test_validate_coordinate_pair() -> None:
    valid, coords = GeometryService.validate_coordinate_pair([32.0, -97.0])
    assert valid
    assert coords == [32.0, -97.0]

    invalid, coords = GeometryService.validate_coordinate_pair([95.0, 0.0])
    assert not invalid
    assert coords is None

    invalid, _ = GeometryService.validate_coordinate_pair([float("nan"), 0.0])
    assert not invalid


def test_haversine_zero_and_symmetric() -> None:
    assert GeometryService.haversine_distance(43.0, 76.0, 43.0, 76.0) == 0.0
    ab = GeometryService.haversine_distance(43.2, 76.9, 51.1, 71.4)
    ba = GeometryService.haversine_distance(51.1, 71.4, 43.2, 76.9)
    assert ab == pytest.approx(ba)


def test_haversine_one_degree_of_latitude() -> None:
    d = GeometryService.haversine_distance(0.0, 0.0, 1.0, 0.0)
    assert d == pytest.approx(GeometryService.EARTH_RADIUS_M * math.pi / 180)
    assert GeometryService.haversine_distance(
        0.0, 0.0, 1.0, 0.0, unit="km"
    ) == pytest.approx(d / 1000.0)


def test_haversine_rejects_unknown_unit() -> None:
    with pytest.raises(ValueError):
        GeometryService.haversine_distance(0.0, 0.0, 1.0, 0.0, unit="furlongs")


def test_degenerate_segment_is_point_distance() -> None:
    p = (45.01, 7.02)
    v = (45.0, 7.0)
    assert GeometryService.point_to_segment_distance(
        p, v, v
    ) == GeometryService.haversine_distance(p[0], p[1], v[0], v[1])


def test_point_on_segment_midpoint_is_zero() -> None:
    v = (45.0, 7.0)
    w = (45.002, 7.003)
    mid = ((v[0] + w[0]) / 2, (v[1] + w[1]) / 2)
    assert GeometryService.point_to_segment_distance(mid, v, w) == pytest.approx(
        0.0, abs=1e-6
    )


def test_projection_clamps_to_segment_end() -> None:
    v = (0.0, 0.0)
    w = (0.0, 0.01)
    beyond = (0.0, 0.02)
    d = GeometryService.point_to_segment_distance(beyond, v, w)
    assert d == pytest.approx(
        GeometryService.haversine_distance(0.0, 0.02, 0.0, 0.01)
    )


def test_perpendicular_offset_is_measured_geodesically() -> None:
    offset_deg = math.degrees(100.0 / GeometryService.EARTH_RADIUS_M)
    d = GeometryService.point_to_segment_distance(
        (offset_deg, 0.005), (0.0, 0.0), (0.0, 0.01)
    )
    assert d == pytest.approx(100.0, abs=1e-6)


def test_nearest_distance_to_empty_polyline_is_infinite() -> None:
    assert GeometryService.nearest_distance_to_polyline((0.0, 0.0), []) == math.inf
    assert GeometryService.nearest_distance_to_polyline((0.0, 0.0), None) == math.inf


def test_nearest_distance_takes_minimum_over_segments() -> None:
    polyline = [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01)]
    point = (0.005, 0.0105)
    expected = GeometryService.point_to_segment_distance(
        point, polyline[1], polyline[2]
    )
    assert GeometryService.nearest_distance_to_polyline(point, polyline) == expected


def test_single_point_polyline_uses_point_distance() -> None:
    d = GeometryService.nearest_distance_to_polyline((0.0, 0.0), [(0.0, 0.001)])
    assert d == pytest.approx(GeometryService.haversine_distance(0.0, 0.0, 0.0, 0.001))


def test_bounding_box() -> None:
    bbox = GeometryService.bounding_box([(1.0, 5.0), (-2.0, 7.0), (0.5, 6.0)])
    assert bbox == {"minLat": -2.0, "minLng": 5.0, "maxLat": 1.0, "maxLng": 7.0}
    assert GeometryService.bounding_box([]) is None


def test_bboxes_overlap_within_tolerance() -> None:
    a = {"minLat": 0.0, "minLng": 0.0, "maxLat": 0.0, "maxLng": 0.01}
    near = {"minLat": 0.005, "minLng": 0.0, "maxLat": 0.006, "maxLng": 0.01}
    far = {"minLat": 0.09, "minLng": 0.0, "maxLat": 0.091, "maxLng": 0.01}

    assert BBOX_OVERLAP_TOLERANCE_DEG == 0.01
    assert GeometryService.bboxes_overlap(a, near)
    assert GeometryService.bboxes_overlap(near, a)
    assert not GeometryService.bboxes_overlap(a, far)
    assert GeometryService.bboxes_overlap(a, far, tolerance=0.1)


def test_linestring_from_polyline_flips_to_lng_lat() -> None:
    geometry = GeometryService.linestring_from_polyline([[1.0, 2.0], [3.0, 4.0]])
    assert geometry == {"type": "LineString", "coordinates": [[2.0, 1.0], [4.0, 3.0]]}
    assert GeometryService.linestring_from_polyline([[1.0, 2.0]]) is None


def test_clean_polyline_drops_invalid_and_dedupes() -> None:
    coords = [[1.0, 2.0], [1.0, 2.0], [200.0, 0.0], ["bad", 0], [1.5, 2.5]]
    assert clean_polyline(coords) == [[1.0, 2.0], [1.0, 2.0], [1.5, 2.5]]
    assert clean_polyline(coords, dedupe=True) == [[1.0, 2.0], [1.5, 2.5]]
