"""Point and raster elevation retrieval from remote providers."""

from __future__ import annotations

__version__ = "0.1.0"

from elevgrid.api import get_elevation_raster, get_point_elevations, resolve_point_requests  # noqa: E402
from elevgrid.config import ElevationConfig, load_config, resolve_config  # noqa: E402
from elevgrid.errors import (  # noqa: E402
    ConfigurationError,
    ElevgridError,
    EmptyMosaicError,
    ResolutionError,
    TransportError,
    UnsupportedZoomError,
)

__all__ = [
    "ConfigurationError",
    "ElevationConfig",
    "ElevgridError",
    "EmptyMosaicError",
    "ResolutionError",
    "TransportError",
    "UnsupportedZoomError",
    "__version__",
    "get_elevation_raster",
    "get_point_elevations",
    "load_config",
    "resolve_config",
    "resolve_point_requests",
]
