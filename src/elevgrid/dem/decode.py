"""Decoders turning raw tile bytes into elevation grids."""

from __future__ import annotations

import warnings

import numpy as np
from rasterio.errors import NotGeoreferencedWarning, RasterioIOError
from rasterio.io import MemoryFile


class DecodeError(ValueError):
    """Raw payload bytes could not be decoded into elevations."""


def _read_bands(payload: bytes) -> tuple[np.ndarray, float | None]:
    if not payload:
        raise DecodeError("Empty tile payload.")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with MemoryFile(payload) as memfile:
                with memfile.open() as dataset:
                    return dataset.read(), dataset.nodata
    except RasterioIOError as exc:
        raise DecodeError(f"Unreadable raster payload: {exc}") from exc


def decode_geotiff(payload: bytes) -> np.ndarray:
    """Decode a single-band elevation GeoTIFF; nodata becomes NaN."""
    bands, nodata = _read_bands(payload)
    grid = bands[0].astype(np.float32)
    if nodata is not None and not np.isnan(nodata):
        grid[grid == nodata] = np.nan
    return grid


def _rgb(payload: bytes) -> np.ndarray:
    bands, _nodata = _read_bands(payload)
    if bands.shape[0] < 3:
        raise DecodeError(f"Expected an RGB tile, got {bands.shape[0]} band(s).")
    return bands[:3].astype(np.float64)


def terrarium_to_elevation(rgb: np.ndarray) -> np.ndarray:
    """Terrarium encoding: (R * 256 + G + B / 256) - 32768."""
    red, green, blue = rgb[0], rgb[1], rgb[2]
    return (red * 256.0 + green + blue / 256.0 - 32768.0).astype(np.float32)


def terrain_rgb_to_elevation(rgb: np.ndarray) -> np.ndarray:
    """Mapbox Terrain-RGB encoding: -10000 + (R * 65536 + G * 256 + B) * 0.1."""
    red, green, blue = rgb[0], rgb[1], rgb[2]
    return (-10000.0 + (red * 65536.0 + green * 256.0 + blue) * 0.1).astype(np.float32)


def decode_terrarium(payload: bytes) -> np.ndarray:
    return terrarium_to_elevation(_rgb(payload))


def decode_terrain_rgb(payload: bytes) -> np.ndarray:
    return terrain_rgb_to_elevation(_rgb(payload))
