"""Elevation tiling, mosaic, and normalization helpers."""

from elevgrid.dem.crs import normalize_crs, transform_bounds, transform_points, transformer
from elevgrid.dem.models import (
    TILE_CRS,
    BoundingBox,
    Mosaic,
    PointRequest,
    PointResult,
    TileCoordinate,
    TileFetchResult,
    TilePayload,
)
from elevgrid.dem.mosaic import assemble_mosaic, sample_mosaic, write_mosaic
from elevgrid.dem.normalize import normalize_geometry, normalize_points
from elevgrid.dem.tiling import ground_resolution, tile_bounds, tiles_for_bounds

__all__ = [
    "BoundingBox",
    "Mosaic",
    "PointRequest",
    "PointResult",
    "TILE_CRS",
    "TileCoordinate",
    "TileFetchResult",
    "TilePayload",
    "assemble_mosaic",
    "ground_resolution",
    "normalize_crs",
    "normalize_geometry",
    "normalize_points",
    "sample_mosaic",
    "tile_bounds",
    "tiles_for_bounds",
    "transform_bounds",
    "transform_points",
    "transformer",
    "write_mosaic",
]
