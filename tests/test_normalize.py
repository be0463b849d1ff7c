from __future__ import annotations

import math
from types import SimpleNamespace

import pytest
from pyproj import Transformer

from elevgrid.dem.models import BoundingBox, PointRequest
from elevgrid.dem.normalize import bounds_from_shapes, normalize_geometry, normalize_points
from elevgrid.errors import ConfigurationError


def _to_mercator(x: float, y: float) -> tuple[float, float]:
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True).transform(x, y)


def test_bbox_requires_a_crs() -> None:
    with pytest.raises(ConfigurationError, match="no CRS"):
        normalize_geometry((8.0, 47.0, 9.0, 48.0))


def test_bbox_projects_to_tile_crs() -> None:
    box = normalize_geometry((8.0, 47.0, 9.0, 48.0), "EPSG:4326")
    assert box.crs == "EPSG:3857"
    min_x, min_y = _to_mercator(8.0, 47.0)
    max_x, max_y = _to_mercator(9.0, 48.0)
    assert box.as_tuple() == pytest.approx((min_x, min_y, max_x, max_y))


def test_point_envelope_is_exact() -> None:
    points = [(8.0, 47.5), (8.2, 47.1), (8.7, 47.9)]
    box = normalize_geometry(points, "EPSG:4326")
    min_x, min_y = _to_mercator(8.0, 47.1)
    max_x, max_y = _to_mercator(8.7, 47.9)
    assert box.as_tuple() == pytest.approx((min_x, min_y, max_x, max_y))


def test_attached_crs_is_used_when_not_explicit() -> None:
    box = BoundingBox(8.0, 47.0, 9.0, 48.0, "EPSG:4326")
    assert normalize_geometry(box) == normalize_geometry(box.as_tuple(), "EPSG:4326")


def test_dataset_like_input_uses_its_crs() -> None:
    dataset = SimpleNamespace(bounds=(8.0, 47.0, 9.0, 48.0), crs="EPSG:4326")
    assert normalize_geometry(dataset) == normalize_geometry((8.0, 47.0, 9.0, 48.0), "EPSG:4326")


def test_explicit_crs_wins_over_attached(caplog) -> None:
    box = BoundingBox(900000.0, 5900000.0, 910000.0, 5910000.0, "EPSG:4326")
    result = normalize_geometry(box, "EPSG:3857")
    assert result.as_tuple() == pytest.approx(box.as_tuple())
    assert "mismatch" in caplog.text


def test_geojson_feature_collection_with_embedded_crs() -> None:
    collection = {
        "type": "FeatureCollection",
        "crs": {"type": "name", "properties": {"name": "EPSG:4326"}},
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[8.0, 47.0], [9.0, 47.0], [9.0, 48.0], [8.0, 47.0]]],
                },
            },
            {
                "type": "Feature",
                "properties": {},
                "geometry": {"type": "Point", "coordinates": [9.5, 46.5]},
            },
        ],
    }
    box = normalize_geometry(collection)
    expected = normalize_geometry((8.0, 46.5, 9.5, 48.0), "EPSG:4326")
    assert box.as_tuple() == pytest.approx(expected.as_tuple())


def test_polar_latitudes_are_clamped() -> None:
    box = normalize_geometry((-10.0, 80.0, 10.0, 90.0), "EPSG:4326")
    assert math.isfinite(box.max_y)
    assert box.max_y == pytest.approx(20037508.342789244)


def test_unsupported_geometry() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported geometry"):
        normalize_geometry("not a geometry", "EPSG:4326")


def test_invalid_crs() -> None:
    with pytest.raises(ConfigurationError, match="Invalid CRS"):
        normalize_geometry((0.0, 0.0, 1.0, 1.0), "EPSG:999999")


def test_bounds_from_shapes_requires_coordinates() -> None:
    with pytest.raises(ConfigurationError, match="could not be determined"):
        bounds_from_shapes([{"type": "Polygon", "coordinates": []}])


def test_bounding_box_invariants() -> None:
    with pytest.raises(ConfigurationError, match="minimum exceeds maximum"):
        BoundingBox(2.0, 0.0, 1.0, 1.0, "EPSG:4326")
    with pytest.raises(ConfigurationError, match="non-finite"):
        BoundingBox(0.0, 0.0, math.inf, 1.0, "EPSG:4326")


def test_normalize_points_keeps_attributes_in_order() -> None:
    records = [
        {"name": "a", "x": "8.1", "y": 47.2, "category": "peak"},
        {"name": "b", "x": 8.3, "y": "47.4", "category": "valley"},
    ]
    requests = normalize_points(records, "EPSG:4326")

    assert [request.index for request in requests] == [0, 1]
    assert requests[0] == PointRequest(
        0, 8.1, 47.2, "EPSG:4326", {"name": "a", "category": "peak"}
    )
    assert list(requests[1].attributes) == ["name", "category"]


def test_normalize_points_accepts_pairs_and_custom_columns() -> None:
    pairs = normalize_points([(1.0, 2.0), (3.0, 4.0)], "EPSG:3857")
    assert [(request.x, request.y) for request in pairs] == [(1.0, 2.0), (3.0, 4.0)]

    custom = normalize_points([{"lon": 1, "lat": 2}], "EPSG:4326", x="lon", y="lat")
    assert (custom[0].x, custom[0].y) == (1.0, 2.0)


def test_normalize_points_from_point_features() -> None:
    collection = {
        "type": "FeatureCollection",
        "crs": "EPSG:4326",
        "features": [
            {
                "type": "Feature",
                "properties": {"category": "hut"},
                "geometry": {"type": "Point", "coordinates": [7.5, 46.0]},
            }
        ],
    }
    requests = normalize_points(collection)
    assert requests[0].crs == "EPSG:4326"
    assert requests[0].attributes == {"category": "hut"}
    assert (requests[0].x, requests[0].y) == (7.5, 46.0)


def test_normalize_points_errors() -> None:
    with pytest.raises(ConfigurationError, match="no CRS"):
        normalize_points([(1.0, 2.0)])
    with pytest.raises(ConfigurationError, match="missing coordinate column 'y'"):
        normalize_points([{"x": 1.0}], "EPSG:4326")
    with pytest.raises(ConfigurationError, match="non-numeric"):
        normalize_points([{"x": "east", "y": 1.0}], "EPSG:4326")
