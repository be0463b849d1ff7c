"""Mosaic assembly: tile placement, crop to request, optional reprojection."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Sequence

import numpy as np
import rasterio
from rasterio.crs import CRS as RasterioCRS
from rasterio.enums import Resampling
from rasterio.transform import Affine, array_bounds, from_origin
from rasterio.warp import calculate_default_transform, reproject

from elevgrid.dem.crs import crs_equal, crs_string, transform_bounds
from elevgrid.dem.models import (
    TILE_CRS,
    BoundingBox,
    Mosaic,
    TileCoordinate,
    TileFetchResult,
)
from elevgrid.dem.tiling import ground_resolution, tile_bounds
from elevgrid.errors import ConfigurationError, EmptyMosaicError

LOGGER = logging.getLogger(__name__)

RESAMPLING_CHOICES = ("nearest", "bilinear")
# Pixel offsets closer than this to an integer are snapped before floor/ceil.
_SNAP = 1e-6


def _resampling(method: str) -> Resampling:
    """Return rasterio resampling enum for a method string."""
    if method not in RESAMPLING_CHOICES:
        raise ConfigurationError(
            f"Unsupported resampling '{method}'; expected one of {', '.join(RESAMPLING_CHOICES)}."
        )
    return Resampling[method]


def _floor(value: float) -> int:
    nearest = round(value)
    return int(nearest) if abs(value - nearest) < _SNAP else math.floor(value)


def _ceil(value: float) -> int:
    nearest = round(value)
    return int(nearest) if abs(value - nearest) < _SNAP else math.ceil(value)


def _window(start: float, stop: float, size: int) -> tuple[int, int]:
    """Return a clamped [lo, hi) pixel range with at least one pixel."""
    lo = min(max(_floor(start), 0), size - 1)
    hi = min(max(_ceil(stop), lo + 1), size)
    return lo, hi


def _union_coordinates(fetched: TileFetchResult) -> list[TileCoordinate]:
    coords = set(fetched.requested)
    coords.update(payload.coordinate for payload in fetched.payloads)
    return sorted(coords)


def _place_tiles(fetched: TileFetchResult) -> tuple[np.ndarray, Affine, int, int]:
    """Lay tiles onto the union grid by coordinate."""
    zooms = {payload.coordinate.zoom for payload in fetched.payloads}
    sizes = {payload.tile_size for payload in fetched.payloads}
    if len(zooms) != 1:
        raise ValueError(f"All tiles must share one zoom level, got {sorted(zooms)}.")
    if len(sizes) != 1:
        raise ValueError(f"All tiles must share one tile size, got {sorted(sizes)}.")
    zoom = zooms.pop()
    size = sizes.pop()

    coords = [coord for coord in _union_coordinates(fetched) if coord.zoom == zoom]
    min_col = min(coord.column for coord in coords)
    max_col = max(coord.column for coord in coords)
    min_row = min(coord.row for coord in coords)
    max_row = max(coord.row for coord in coords)

    grid = np.full(
        ((max_row - min_row + 1) * size, (max_col - min_col + 1) * size),
        np.nan,
        dtype=np.float32,
    )
    for payload in fetched.payloads:
        coord = payload.coordinate
        row_off = (coord.row - min_row) * size
        col_off = (coord.column - min_col) * size
        tile = payload.grid.astype(np.float32)
        if not np.isnan(payload.nodata):
            tile = np.where(tile == payload.nodata, np.nan, tile)
        grid[row_off : row_off + size, col_off : col_off + size] = tile

    left, _bottom, _right, top = tile_bounds(TileCoordinate(zoom=zoom, row=min_row, column=min_col))
    res = ground_resolution(zoom, size)
    return grid, from_origin(left, top, res, res), zoom, size


def _crop(
    grid: np.ndarray,
    transform: Affine,
    bounds: BoundingBox,
) -> tuple[np.ndarray, Affine, BoundingBox]:
    """Crop the union grid to the pixel window covering bounds."""
    box = bounds.as_tuple()
    if not crs_equal(bounds.crs, TILE_CRS):
        box = transform_bounds(box, bounds.crs, TILE_CRS, densify_pts=21)
    minx, miny, maxx, maxy = box
    res = transform.a
    left = transform.c
    top = transform.f
    height, width = grid.shape
    col0, col1 = _window((minx - left) / res, (maxx - left) / res, width)
    row0, row1 = _window((top - maxy) / res, (top - miny) / res, height)

    cropped = grid[row0:row1, col0:col1].copy()
    crop_left = left + col0 * res
    crop_top = top - row0 * res
    extent = BoundingBox(
        crop_left,
        top - row1 * res,
        left + col1 * res,
        crop_top,
        TILE_CRS,
    )
    return cropped, from_origin(crop_left, crop_top, res, res), extent


def _reproject(
    grid: np.ndarray,
    transform: Affine,
    extent: BoundingBox,
    target_crs: str,
    resampling: Resampling,
) -> tuple[np.ndarray, Affine, BoundingBox]:
    """Resample a tile-native grid onto a regular grid in target_crs."""
    src_crs = RasterioCRS.from_user_input(TILE_CRS)
    dst_crs = RasterioCRS.from_user_input(target_crs)
    height, width = grid.shape
    dst_transform, dst_width, dst_height = calculate_default_transform(
        src_crs,
        dst_crs,
        width,
        height,
        *extent.as_tuple(),
    )
    destination = np.full((dst_height, dst_width), np.nan, dtype=np.float32)
    reproject(
        source=grid,
        destination=destination,
        src_transform=transform,
        src_crs=src_crs,
        dst_transform=dst_transform,
        dst_crs=dst_crs,
        resampling=resampling,
        src_nodata=np.nan,
        dst_nodata=np.nan,
    )
    west, south, east, north = array_bounds(dst_height, dst_width, dst_transform)
    return destination, dst_transform, BoundingBox(west, south, east, north, target_crs)


def assemble_mosaic(
    fetched: TileFetchResult,
    bounds: BoundingBox,
    *,
    target_crs: str | None = None,
    resampling: str = "nearest",
) -> Mosaic:
    """Stitch fetched tiles, crop to bounds, and reproject when requested."""
    method = _resampling(resampling)
    if not fetched.payloads:
        raise EmptyMosaicError(
            f"No tiles fetched ({len(fetched.requested)} requested, all failed)."
        )

    grid, transform, zoom, _size = _place_tiles(fetched)
    grid, transform, extent = _crop(grid, transform, bounds)
    crs = TILE_CRS
    if target_crs and not crs_equal(target_crs, TILE_CRS):
        crs = crs_string(target_crs)
        grid, transform, extent = _reproject(grid, transform, extent, crs, method)

    missing = tuple(fetched.failed)
    if missing:
        LOGGER.warning(
            "Mosaic assembled with %s missing tile(s); their cells are nodata.",
            len(missing),
        )
    return Mosaic(
        grid=grid,
        bounds=extent,
        resolution=(abs(transform.a), abs(transform.e)),
        crs=crs,
        transform=transform,
        zoom=zoom,
        missing_tiles=missing,
    )


def sample_mosaic(
    mosaic: Mosaic,
    xs: Sequence[float],
    ys: Sequence[float],
) -> list[float | None]:
    """Return grid values at coordinates in the mosaic CRS (None outside)."""
    transform = mosaic.transform
    height, width = mosaic.shape
    values: list[float | None] = []
    for x, y in zip(xs, ys):
        # Mosaic grids are north-up, so the transform has no rotation terms.
        col_index = _floor((x - transform.c) / transform.a)
        row_index = _floor((y - transform.f) / transform.e)
        # The right and bottom edges belong to the last cell.
        if col_index == width:
            col_index -= 1
        if row_index == height:
            row_index -= 1
        if 0 <= col_index < width and 0 <= row_index < height:
            values.append(float(mosaic.grid[row_index, col_index]))
        else:
            values.append(None)
    return values


def write_mosaic(
    mosaic: Mosaic,
    output_path: Path,
    *,
    driver: str = "GTiff",
    compression: str | None = None,
) -> Path:
    """Write a mosaic to a single-band raster file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    height, width = mosaic.shape
    meta = {
        "driver": driver,
        "height": height,
        "width": width,
        "count": 1,
        "dtype": mosaic.grid.dtype,
        "crs": RasterioCRS.from_user_input(mosaic.crs),
        "transform": mosaic.transform,
        "nodata": mosaic.nodata,
    }
    if compression:
        meta["compress"] = compression
    with rasterio.open(output_path, "w", **meta) as dataset:
        dataset.write(mosaic.grid, 1)
    return output_path
