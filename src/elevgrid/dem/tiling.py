"""Web Mercator tile pyramid addressing."""

from __future__ import annotations

import math
from typing import Tuple

from elevgrid.dem.crs import crs_equal, transform_bounds
from elevgrid.dem.models import TILE_CRS, BoundingBox, TileCoordinate
from elevgrid.errors import UnsupportedZoomError

Bounds = Tuple[float, float, float, float]

EARTH_RADIUS = 6378137.0
HALF_WORLD = math.pi * EARTH_RADIUS
DEFAULT_MAX_ZOOM = 15


def tile_span(zoom: int) -> float:
    """Return the ground width of one tile at a zoom level, in meters."""
    return 2 * HALF_WORLD / (2**zoom)


def ground_resolution(zoom: int, tile_size: int) -> float:
    """Return the pixel size at a zoom level for a given tile size."""
    return tile_span(zoom) / tile_size


def tile_bounds(coordinate: TileCoordinate) -> Bounds:
    """Return the tile footprint in EPSG:3857."""
    span = tile_span(coordinate.zoom)
    left = -HALF_WORLD + coordinate.column * span
    top = HALF_WORLD - coordinate.row * span
    return (left, top - span, left + span, top)


def check_zoom(zoom: int, max_zoom: int = DEFAULT_MAX_ZOOM) -> int:
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        raise UnsupportedZoomError(zoom, max_zoom)
    if zoom < 0 or zoom > max_zoom:
        raise UnsupportedZoomError(zoom, max_zoom)
    return zoom


def _index_range(low: float, high: float, limit: int) -> tuple[int, int]:
    """Return the inclusive tile range covering [low, high] in tile units."""
    start = math.floor(low)
    end = math.ceil(high) - 1
    start = min(max(start, 0), limit - 1)
    end = min(max(end, start), limit - 1)
    return start, end


def tiles_for_bounds(
    bounds: BoundingBox,
    zoom: int,
    *,
    max_zoom: int = DEFAULT_MAX_ZOOM,
) -> list[TileCoordinate]:
    """Return the row-major tile rectangle covering a bounding box."""
    check_zoom(zoom, max_zoom)
    box = bounds.as_tuple()
    if not crs_equal(bounds.crs, TILE_CRS):
        box = transform_bounds(box, bounds.crs, TILE_CRS, densify_pts=21)
    minx, miny, maxx, maxy = box
    span = tile_span(zoom)
    limit = 2**zoom
    col_start, col_end = _index_range(
        (minx + HALF_WORLD) / span,
        (maxx + HALF_WORLD) / span,
        limit,
    )
    row_start, row_end = _index_range(
        (HALF_WORLD - maxy) / span,
        (HALF_WORLD - miny) / span,
        limit,
    )
    return [
        TileCoordinate(zoom=zoom, row=row, column=column)
        for row in range(row_start, row_end + 1)
        for column in range(col_start, col_end + 1)
    ]
