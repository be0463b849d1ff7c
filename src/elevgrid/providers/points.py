"""Point elevation adapters."""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

from elevgrid.dem.fetch import fetch_tiles
from elevgrid.dem.models import TILE_CRS, BoundingBox, TileCoordinate, TileFetchResult
from elevgrid.dem.mosaic import assemble_mosaic, sample_mosaic
from elevgrid.dem.tiling import tiles_for_bounds
from elevgrid.errors import ConfigurationError
from elevgrid.providers.base import ProviderSpec, RequestContext, TileProvider
from elevgrid.providers.tiles import AwsTerrainTiles

LOGGER = logging.getLogger(__name__)

EPQS_URL = "https://epqs.nationalmap.gov/v1/json"
EPQS_OUTSIDE_COVERAGE = -1000000.0
OPENTOPODATA_URL = "https://api.opentopodata.org/v1/{dataset}"


def _as_float(value: Any, source: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{source} returned a non-numeric elevation: {value!r}") from exc


class EpqsPointProvider:
    """USGS Elevation Point Query Service, one request per point."""

    def spec(self) -> ProviderSpec:
        return ProviderSpec(
            name="epqs",
            kind="point",
            description="USGS Elevation Point Query Service (United States only)",
            point_crs="EPSG:4326",
            sentinels={EPQS_OUTSIDE_COVERAGE: "outside 3DEP coverage"},
        )

    def resolve_point(self, x: float, y: float, context: RequestContext) -> float:
        payload = context.transport.get_json(
            EPQS_URL,
            params={
                "x": x,
                "y": y,
                "wkid": 4326,
                "units": "Meters",
                "includeDate": "false",
            },
        )
        if not isinstance(payload, dict) or "value" not in payload:
            raise ValueError(f"EPQS response has no elevation value: {payload!r}")
        return _as_float(payload["value"], "EPQS")


class OpenTopoDataPointProvider:
    """OpenTopoData public API; batches of up to 100 locations, 1 request/s."""

    def __init__(self, dataset: str = "mapzen") -> None:
        self.dataset = dataset

    def spec(self) -> ProviderSpec:
        return ProviderSpec(
            name="opentopodata",
            kind="point",
            description=f"OpenTopoData public API ({self.dataset} dataset; NaN where no data)",
            point_crs="EPSG:4326",
            batch_size=100,
            min_request_interval=1.0,
        )

    def resolve_batch(
        self,
        coordinates: Sequence[tuple[float, float]],
        context: RequestContext,
    ) -> list[float | None]:
        locations = "|".join(f"{lat:.8f},{lon:.8f}" for lon, lat in coordinates)
        payload = context.transport.get_json(
            OPENTOPODATA_URL.format(dataset=self.dataset),
            params={"locations": locations},
        )
        if not isinstance(payload, dict) or payload.get("status") != "OK":
            detail = payload.get("error") if isinstance(payload, dict) else payload
            raise ValueError(f"OpenTopoData request failed: {detail!r}")
        values: list[float | None] = []
        for entry in payload.get("results", []):
            elevation = entry.get("elevation")
            values.append(math.nan if elevation is None else _as_float(elevation, "OpenTopoData"))
        return values


class TileSamplingPointProvider:
    """Sample points from the tiles that contain them."""

    def __init__(self, tile_provider: TileProvider | None = None) -> None:
        self.tile_provider = tile_provider or AwsTerrainTiles()

    def spec(self) -> ProviderSpec:
        tile_spec = self.tile_provider.spec()
        return ProviderSpec(
            name=tile_spec.name,
            kind="point",
            description=f"Point samples from {tile_spec.description}",
            tile_size=tile_spec.tile_size,
            max_zoom=tile_spec.max_zoom,
            point_crs=TILE_CRS,
            batch_size=0,
            api_key_env=tile_spec.api_key_env,
            requires_api_key=tile_spec.requires_api_key,
            requires_zoom=True,
        )

    def resolve_batch(
        self,
        coordinates: Sequence[tuple[float, float]],
        context: RequestContext,
    ) -> list[float | None]:
        """Fetch only the tiles holding points and sample each point from its tile.

        Points on tiles that could not be fetched come back as ``None``.
        """
        config = context.config
        if config.zoom is None:
            raise ConfigurationError("Tile-sampled point lookups require a zoom level.")
        max_zoom = self.tile_provider.spec().max_zoom or 15

        groups: dict[TileCoordinate, list[int]] = {}
        for position, (x, y) in enumerate(coordinates):
            point_box = BoundingBox(x, y, x, y, TILE_CRS)
            tile = tiles_for_bounds(point_box, config.zoom, max_zoom=max_zoom)[0]
            groups.setdefault(tile, []).append(position)
        if config.max_tiles and len(groups) > config.max_tiles:
            raise ConfigurationError(
                f"Point lookup needs {len(groups)} tiles at zoom {config.zoom}, above "
                f"max_tiles={config.max_tiles}; lower the zoom or raise max_tiles."
            )

        fetched = fetch_tiles(
            sorted(groups),
            self.tile_provider,
            context=context,
            max_workers=config.max_workers,
            timeout=config.timeout,
        )
        payloads = {payload.coordinate: payload for payload in fetched.payloads}
        values: list[float | None] = [None] * len(coordinates)
        for tile, positions in groups.items():
            payload = payloads.get(tile)
            if payload is None:
                continue
            xs = [coordinates[pos][0] for pos in positions]
            ys = [coordinates[pos][1] for pos in positions]
            envelope = BoundingBox(min(xs), min(ys), max(xs), max(ys), TILE_CRS)
            mosaic = assemble_mosaic(
                TileFetchResult(requested=(tile,), payloads=(payload,)),
                envelope,
            )
            for pos, sample in zip(positions, sample_mosaic(mosaic, xs, ys)):
                values[pos] = sample
        return values
