"""Geometry normalization into tile-native bounding boxes and point requests."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from elevgrid.dem.crs import (
    clamp_latitudes,
    crs_equal,
    crs_string,
    is_geographic,
    transform_bounds,
)
from elevgrid.dem.models import TILE_CRS, BoundingBox, PointRequest
from elevgrid.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

GEOJSON_GEOMETRY_TYPES = {
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
}


def _extract_geojson_shapes(data: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    shapes: list[Mapping[str, Any]] = []
    kind = data.get("type")
    if kind == "FeatureCollection":
        for feature in data.get("features", []):
            geometry = feature.get("geometry")
            if geometry:
                shapes.extend(_extract_geojson_shapes(geometry))
    elif kind == "Feature":
        geometry = data.get("geometry")
        if geometry:
            shapes.extend(_extract_geojson_shapes(geometry))
    elif kind == "GeometryCollection":
        for geometry in data.get("geometries", []):
            shapes.extend(_extract_geojson_shapes(geometry))
    elif kind in GEOJSON_GEOMETRY_TYPES:
        shapes.append(data)
    return shapes


def _extract_geojson_crs(data: Mapping[str, Any]) -> str | None:
    crs = data.get("crs")
    if isinstance(crs, Mapping):
        properties = crs.get("properties")
        if isinstance(properties, Mapping):
            name = properties.get("name")
            if isinstance(name, str):
                return name
    if isinstance(crs, str):
        return crs
    return None


def bounds_from_shapes(shapes: Iterable[Mapping[str, Any]]) -> tuple[float, float, float, float]:
    """Compute bounds from GeoJSON-like shapes."""
    xs: list[float] = []
    ys: list[float] = []

    def extract_coords(coords: Any) -> None:
        if not coords:
            return
        if isinstance(coords[0], (int, float)):
            xs.append(float(coords[0]))
            ys.append(float(coords[1]))
            return
        for part in coords:
            extract_coords(part)

    for shape in shapes:
        coords = shape.get("coordinates") if isinstance(shape, Mapping) else None
        if coords is not None:
            extract_coords(coords)

    if not xs or not ys:
        raise ConfigurationError("Geometry bounds could not be determined.")
    return (min(xs), min(ys), max(xs), max(ys))


def _envelope(pairs: Iterable[tuple[float, float]]) -> tuple[float, float, float, float]:
    xs: list[float] = []
    ys: list[float] = []
    for x, y in pairs:
        xs.append(float(x))
        ys.append(float(y))
    if not xs:
        raise ConfigurationError("At least one point is required.")
    return (min(xs), min(ys), max(xs), max(ys))


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) == 2
        and all(isinstance(item, (int, float)) for item in value)
    )


def _bounds_and_crs(geometry: Any) -> tuple[tuple[float, float, float, float], str | None]:
    """Return (bounds, attached CRS) for any supported geometry shape."""
    if isinstance(geometry, BoundingBox):
        return geometry.as_tuple(), geometry.crs
    if isinstance(geometry, Mapping):
        shapes = _extract_geojson_shapes(geometry)
        if not shapes:
            raise ConfigurationError("No GeoJSON geometries found.")
        return bounds_from_shapes(shapes), _extract_geojson_crs(geometry)
    if hasattr(geometry, "bounds") and hasattr(geometry, "crs"):
        raw = geometry.bounds
        bounds = (float(raw[0]), float(raw[1]), float(raw[2]), float(raw[3]))
        attached = geometry.crs
        return bounds, (attached.to_string() if hasattr(attached, "to_string") else attached)
    if isinstance(geometry, Sequence) and not isinstance(geometry, (str, bytes)):
        items = list(geometry)
        if len(items) == 4 and all(isinstance(item, (int, float)) for item in items):
            return (float(items[0]), float(items[1]), float(items[2]), float(items[3])), None
        if items and all(isinstance(item, PointRequest) for item in items):
            crs_values = {item.crs for item in items}
            if len(crs_values) > 1:
                raise ConfigurationError("Point requests must share a single CRS.")
            return _envelope((item.x, item.y) for item in items), crs_values.pop()
        if items and all(_is_pair(item) for item in items):
            return _envelope(items), None
    raise ConfigurationError(f"Unsupported geometry input: {type(geometry).__name__}")


def resolve_crs(explicit: str | None, attached: str | None) -> str:
    """Pick the explicit CRS over the one carried by the input."""
    if explicit and attached and not crs_equal(explicit, attached):
        LOGGER.warning(
            "Geometry CRS mismatch: attached %s differs from explicit %s; using explicit.",
            attached,
            explicit,
        )
    resolved = explicit or attached
    if not resolved:
        raise ConfigurationError(
            "Geometry has no CRS; pass one explicitly (for example crs='EPSG:4326')."
        )
    return crs_string(resolved)


def normalize_geometry(
    geometry: Any,
    crs: str | None = None,
    *,
    target_crs: str = TILE_CRS,
) -> BoundingBox:
    """Return the envelope of a geometry as a bounding box in target_crs."""
    bounds, attached = _bounds_and_crs(geometry)
    source_crs = resolve_crs(crs, attached)
    minx, miny, maxx, maxy = bounds
    if is_geographic(source_crs) and not is_geographic(target_crs):
        miny, maxy = clamp_latitudes([miny, maxy])
    projected = transform_bounds(
        (minx, miny, maxx, maxy),
        source_crs,
        target_crs,
        densify_pts=21,
    )
    return BoundingBox.from_tuple(projected, crs_string(target_crs))


def _coordinate(record: Mapping[str, Any], column: str, index: int) -> float:
    if column not in record:
        raise ConfigurationError(f"Record {index} is missing coordinate column '{column}'.")
    try:
        return float(record[column])
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Record {index} has a non-numeric '{column}' value: {record[column]!r}"
        ) from exc


def normalize_points(
    records: Iterable[Any],
    crs: str | None = None,
    *,
    x: str = "x",
    y: str = "y",
) -> list[PointRequest]:
    """Convert caller records into indexed point requests.

    Records are mappings holding ``x``/``y`` columns plus any extra
    attributes, or bare ``(x, y)`` pairs. A FeatureCollection of Point
    features is accepted too; its properties become the attributes.
    """
    attached: str | None = getattr(records, "crs", None)
    if isinstance(records, Mapping) and records.get("type") == "FeatureCollection":
        attached = _extract_geojson_crs(records)
        items: list[Any] = []
        for feature in records.get("features", []):
            geometry = feature.get("geometry") or {}
            if geometry.get("type") != "Point":
                raise ConfigurationError("Point lookups require Point features.")
            coords = geometry.get("coordinates") or []
            row = dict(feature.get("properties") or {})
            row[x], row[y] = coords[0], coords[1]
            items.append(row)
    else:
        items = list(records)
    source_crs = resolve_crs(crs, attached)

    requests: list[PointRequest] = []
    for index, record in enumerate(items):
        if isinstance(record, Mapping):
            px = _coordinate(record, x, index)
            py = _coordinate(record, y, index)
            attributes = {key: value for key, value in record.items() if key not in (x, y)}
            source: Mapping[str, Any] | None = record
        elif _is_pair(record):
            px, py = float(record[0]), float(record[1])
            attributes = {}
            source = None
        else:
            raise ConfigurationError(f"Unsupported point record at index {index}.")
        requests.append(PointRequest(index, px, py, source_crs, attributes, source))
    return requests
