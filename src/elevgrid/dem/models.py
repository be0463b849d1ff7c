"""Data models used by elevation tiling, mosaics, and point lookups."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple

import numpy as np
from rasterio.transform import Affine

from elevgrid.errors import ConfigurationError, ResolutionError

Bounds = Tuple[float, float, float, float]
Resolution = Tuple[float, float]

TILE_CRS = "EPSG:3857"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent in a named CRS."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    crs: str

    def __post_init__(self) -> None:
        values = (self.min_x, self.min_y, self.max_x, self.max_y)
        if not all(math.isfinite(value) for value in values):
            raise ConfigurationError(f"Bounding box has non-finite coordinates: {values}")
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ConfigurationError(f"Bounding box minimum exceeds maximum: {values}")
        if not self.crs:
            raise ConfigurationError("Bounding box CRS is required.")

    @classmethod
    def from_tuple(cls, bounds: Bounds, crs: str) -> "BoundingBox":
        min_x, min_y, max_x, max_y = (float(value) for value in bounds)
        return cls(min_x, min_y, max_x, max_y, crs)

    def as_tuple(self) -> Bounds:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    @property
    def is_degenerate(self) -> bool:
        """True when the box collapses to a single point."""
        return self.min_x == self.max_x and self.min_y == self.max_y


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """Quadtree tile address; ordering is row-major within a zoom."""

    zoom: int
    row: int
    column: int

    def __post_init__(self) -> None:
        if self.zoom < 0:
            raise ValueError(f"Tile zoom must be >= 0, got {self.zoom}")
        limit = 2**self.zoom
        if not 0 <= self.column < limit or not 0 <= self.row < limit:
            raise ValueError(
                f"Tile column/row out of range for zoom {self.zoom}: "
                f"({self.column}, {self.row})"
            )

    def __str__(self) -> str:
        return f"{self.zoom}/{self.column}/{self.row}"


@dataclass(frozen=True)
class TilePayload:
    """Decoded elevation samples for a single tile in tile-native CRS."""

    coordinate: TileCoordinate
    grid: np.ndarray
    nodata: float = float("nan")

    @property
    def tile_size(self) -> int:
        return int(self.grid.shape[0])


@dataclass(frozen=True)
class TileFetchResult:
    """Fetched payloads plus the coordinates that could not be retrieved."""

    requested: tuple[TileCoordinate, ...]
    payloads: tuple[TilePayload, ...]
    failures: Mapping[TileCoordinate, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[TileCoordinate]:
        return [coord for coord in self.requested if coord in self.failures]


@dataclass(frozen=True)
class Mosaic:
    """Assembled elevation raster cropped to the requested extent."""

    grid: np.ndarray
    bounds: BoundingBox
    resolution: Resolution
    crs: str
    transform: Affine
    zoom: int
    nodata: float = float("nan")
    missing_tiles: tuple[TileCoordinate, ...] = ()

    @property
    def shape(self) -> tuple[int, int]:
        return (int(self.grid.shape[0]), int(self.grid.shape[1]))

    def valid_mask(self) -> np.ndarray:
        """Return a boolean mask of cells carrying elevation samples."""
        if np.isnan(self.nodata):
            return ~np.isnan(self.grid)
        return self.grid != self.nodata


@dataclass(frozen=True)
class PointRequest:
    """A caller coordinate with its original position and extra columns."""

    index: int
    x: float
    y: float
    crs: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    # Caller record as given, used to rebuild output rows in their original shape.
    source: Mapping[str, Any] | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class PointResult:
    """Elevation (or provider sentinel) for a single point, or its failure."""

    index: int
    elevation: float | None
    error: ResolutionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
