"""Raster tile adapters for quadtree elevation tile services."""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from elevgrid.dem.decode import DecodeError, decode_geotiff, decode_terrain_rgb, decode_terrarium
from elevgrid.dem.models import TileCoordinate, TilePayload
from elevgrid.errors import ConfigurationError
from elevgrid.providers.base import ProviderSpec, RequestContext

LOGGER = logging.getLogger(__name__)

AWS_TILES_ROOT = "https://s3.amazonaws.com/elevation-tiles-prod"


class UrlTemplateTileProvider:
    """Fetch tiles from a {z}/{x}/{y} URL template and decode them."""

    url_template: str = ""
    decoder: Callable[[bytes], np.ndarray] = staticmethod(decode_geotiff)
    _spec: ProviderSpec

    def spec(self) -> ProviderSpec:
        return self._spec

    def tile_url(self, coordinate: TileCoordinate, context: RequestContext) -> str:
        return self.url_template.format(
            z=coordinate.zoom,
            x=coordinate.column,
            y=coordinate.row,
            api_key=self._api_key(context),
        )

    def _api_key(self, context: RequestContext) -> str:
        if not self._spec.requires_api_key:
            return ""
        if not context.config.api_key:
            raise ConfigurationError(f"Provider '{self._spec.name}' requires an API key.")
        return context.config.api_key

    def fetch_tile(self, coordinate: TileCoordinate, context: RequestContext) -> TilePayload:
        """Download and decode a single tile."""
        payload = context.transport.get(self.tile_url(coordinate, context))
        grid = self.decoder(payload)
        if grid.ndim != 2 or grid.shape[0] != grid.shape[1]:
            raise DecodeError(f"Tile {coordinate} is not square: {grid.shape}")
        expected = self._spec.tile_size
        if expected and grid.shape[0] != expected:
            LOGGER.debug(
                "Tile %s has size %s (expected %s)",
                coordinate,
                grid.shape[0],
                expected,
                extra={"tile": str(coordinate)},
            )
        return TilePayload(coordinate=coordinate, grid=grid)


class AwsTerrainTiles(UrlTemplateTileProvider):
    """AWS Terrain Tiles, GeoTIFF encoding (EPSG:3857, 512 px)."""

    url_template = AWS_TILES_ROOT + "/geotiff/{z}/{x}/{y}.tif"
    decoder = staticmethod(decode_geotiff)
    _spec = ProviderSpec(
        name="aws",
        kind="tile",
        description="AWS Terrain Tiles (GeoTIFF, Mapzen/Nextzen sources)",
        tile_size=512,
        max_zoom=14,
    )


class TerrariumTiles(UrlTemplateTileProvider):
    """AWS Terrain Tiles, Terrarium PNG encoding (256 px)."""

    url_template = AWS_TILES_ROOT + "/terrarium/{z}/{x}/{y}.png"
    decoder = staticmethod(decode_terrarium)
    _spec = ProviderSpec(
        name="terrarium",
        kind="tile",
        description="AWS Terrain Tiles (Terrarium PNG)",
        tile_size=256,
        max_zoom=15,
    )


class MapboxTerrainRgb(UrlTemplateTileProvider):
    """Mapbox Terrain-RGB v1 tiles; requires an access token."""

    url_template = (
        "https://api.mapbox.com/v4/mapbox.terrain-rgb/{z}/{x}/{y}.pngraw?access_token={api_key}"
    )
    decoder = staticmethod(decode_terrain_rgb)
    _spec = ProviderSpec(
        name="mapbox",
        kind="tile",
        description="Mapbox Terrain-RGB (PNG)",
        tile_size=256,
        max_zoom=15,
        api_key_env="MAPBOX_ACCESS_TOKEN",
        requires_api_key=True,
    )
