"""Public entry points for raster and point elevation requests."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import Any, ContextManager, Iterable

from elevgrid.config import ElevationConfig, resolve_config
from elevgrid.dem.fetch import fetch_tiles
from elevgrid.dem.models import Mosaic, PointRequest, PointResult
from elevgrid.dem.mosaic import assemble_mosaic
from elevgrid.dem.normalize import normalize_geometry, normalize_points
from elevgrid.dem.points import merge_point_results, resolve_points
from elevgrid.dem.tiling import DEFAULT_MAX_ZOOM, check_zoom, tiles_for_bounds
from elevgrid.errors import ConfigurationError
from elevgrid.providers import registry
from elevgrid.providers.base import ProviderSpec, RequestContext
from elevgrid.transport import HttpTransport

LOGGER = logging.getLogger(__name__)


def _open_transport(
    config: ElevationConfig,
    spec: ProviderSpec,
    transport: HttpTransport | None,
) -> ContextManager[HttpTransport]:
    """Use the caller's transport as-is, or build one for this call."""
    if transport is not None:
        return nullcontext(transport)
    return HttpTransport(
        timeout=config.request_timeout,
        retries=config.retries,
        min_interval=spec.min_request_interval,
    )


def _require_zoom(config: ElevationConfig, spec: ProviderSpec) -> int:
    if config.zoom is None:
        raise ConfigurationError(f"Provider '{spec.name}' requires a zoom level.")
    return check_zoom(config.zoom, spec.max_zoom or DEFAULT_MAX_ZOOM)


def get_elevation_raster(
    geometry: Any,
    crs: str | None = None,
    *,
    config: ElevationConfig | None = None,
    transport: HttpTransport | None = None,
    **options: Any,
) -> Mosaic:
    """Return a mosaic covering a geometry's envelope at the configured zoom."""
    resolved = resolve_config("tile", base=config, **options)
    provider = registry.get_tile_provider(resolved.provider)
    spec = provider.spec()
    zoom = _require_zoom(resolved, spec)

    bounds = normalize_geometry(geometry, crs)
    tiles = tiles_for_bounds(bounds, zoom, max_zoom=spec.max_zoom or DEFAULT_MAX_ZOOM)
    if resolved.max_tiles and len(tiles) > resolved.max_tiles:
        raise ConfigurationError(
            f"Request needs {len(tiles)} tiles at zoom {zoom}, above max_tiles="
            f"{resolved.max_tiles}; lower the zoom or raise max_tiles."
        )
    LOGGER.info("Raster request: %s tile(s) at zoom %s from %s", len(tiles), zoom, spec.name)

    with _open_transport(resolved, spec, transport) as http:
        context = RequestContext(transport=http, config=resolved)
        fetched = fetch_tiles(
            tiles,
            provider,
            context=context,
            max_workers=resolved.max_workers,
            timeout=resolved.timeout,
        )
    return assemble_mosaic(
        fetched,
        bounds,
        target_crs=resolved.target_crs,
        resampling=resolved.resampling,
    )


def resolve_point_requests(
    records: Iterable[Any],
    crs: str | None = None,
    *,
    x: str = "x",
    y: str = "y",
    config: ElevationConfig | None = None,
    transport: HttpTransport | None = None,
    **options: Any,
) -> tuple[list[PointRequest], list[PointResult]]:
    """Normalize records and resolve one PointResult per record."""
    resolved = resolve_config("point", base=config, **options)
    provider = registry.get_point_provider(resolved.provider)
    spec = provider.spec()
    if spec.requires_zoom:
        _require_zoom(resolved, spec)

    requests = normalize_points(records, crs, x=x, y=y)
    with _open_transport(resolved, spec, transport) as http:
        context = RequestContext(transport=http, config=resolved)
        results = resolve_points(
            requests,
            provider,
            context=context,
            max_workers=resolved.max_workers,
            timeout=resolved.timeout,
        )
    failed = sum(1 for result in results if not result.ok)
    if failed:
        LOGGER.warning("%s of %s point lookup(s) failed.", failed, len(results))
    return requests, results


def get_point_elevations(
    records: Iterable[Any],
    crs: str | None = None,
    *,
    x: str = "x",
    y: str = "y",
    column: str = "elevation",
    config: ElevationConfig | None = None,
    transport: HttpTransport | None = None,
    **options: Any,
) -> list[dict[str, Any]]:
    """Return caller records in input order with an elevation column appended."""
    requests, results = resolve_point_requests(
        records,
        crs,
        x=x,
        y=y,
        config=config,
        transport=transport,
        **options,
    )
    return merge_point_results(requests, results, x=x, y=y, column=column)
