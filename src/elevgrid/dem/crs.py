"""CRS normalization and transformation helpers."""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from elevgrid.errors import ConfigurationError

Bounds = Tuple[float, float, float, float]

# Web Mercator latitude limit; tiles do not extend past it.
MAX_MERCATOR_LAT = 85.0511287798066


def normalize_crs(value: str | CRS) -> CRS:
    """Normalize CRS input into a pyproj CRS object."""
    try:
        return CRS.from_user_input(value)
    except CRSError as exc:
        raise ConfigurationError(f"Invalid CRS: {value!r}") from exc


def crs_string(value: str | CRS) -> str:
    """Return a compact identifier for a CRS (EPSG code when available)."""
    crs = normalize_crs(value)
    epsg = crs.to_epsg()
    if epsg is not None:
        return f"EPSG:{epsg}"
    return crs.to_string()


def crs_equal(left: str | CRS, right: str | CRS) -> bool:
    return normalize_crs(left) == normalize_crs(right)


def is_geographic(value: str | CRS) -> bool:
    return normalize_crs(value).is_geographic


def transformer(src: str | CRS, dst: str | CRS) -> Transformer:
    """Return a transformer that respects lon/lat axis order."""
    return Transformer.from_crs(normalize_crs(src), normalize_crs(dst), always_xy=True)


def _linspace(start: float, stop: float, count: int) -> list[float]:
    """Return evenly spaced values between start and stop inclusive."""
    if count <= 1:
        return [start]
    step = (stop - start) / (count - 1)
    return [start + step * index for index in range(count)]


def transform_bounds(
    bounds: Bounds,
    src: str | CRS,
    dst: str | CRS,
    *,
    densify_pts: int = 0,
) -> Bounds:
    """Transform bounding coordinates between CRSs."""
    if crs_equal(src, dst):
        return bounds
    minx, miny, maxx, maxy = bounds
    tx = transformer(src, dst)
    if densify_pts > 0:
        steps = densify_pts + 2
        xs: list[float] = []
        ys: list[float] = []
        for x in _linspace(minx, maxx, steps):
            xs.extend([x, x])
            ys.extend([miny, maxy])
        for y in _linspace(miny, maxy, steps):
            xs.extend([minx, maxx])
            ys.extend([y, y])
    else:
        xs = [minx, minx, maxx, maxx]
        ys = [miny, maxy, miny, maxy]
    out_xs, out_ys = tx.transform(xs, ys)
    return (min(out_xs), min(out_ys), max(out_xs), max(out_ys))


def transform_points(
    xs: Sequence[float],
    ys: Sequence[float],
    src: str | CRS,
    dst: str | CRS,
) -> tuple[list[float], list[float]]:
    """Transform coordinate arrays between CRSs (identity when equal)."""
    if crs_equal(src, dst):
        return [float(x) for x in xs], [float(y) for y in ys]
    out_xs, out_ys = transformer(src, dst).transform(list(xs), list(ys))
    return [float(x) for x in out_xs], [float(y) for y in out_ys]


def clamp_latitudes(ys: Iterable[float]) -> list[float]:
    """Clamp latitudes to the Web Mercator limit."""
    return [max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, float(y))) for y in ys]
