"""Provider registry for named tile and point adapters."""

from __future__ import annotations

import logging
from functools import lru_cache
from importlib import metadata
from typing import Callable, Union, cast

from elevgrid.errors import ConfigurationError
from elevgrid.providers.base import BatchPointProvider, PointProvider, TileProvider
from elevgrid.providers.points import (
    EpqsPointProvider,
    OpenTopoDataPointProvider,
    TileSamplingPointProvider,
)
from elevgrid.providers.tiles import AwsTerrainTiles, MapboxTerrainRgb, TerrariumTiles

AnyPointProvider = Union[PointProvider, BatchPointProvider]
TileFactory = Callable[[], TileProvider]
PointFactory = Callable[[], AnyPointProvider]

TILE_ENTRYPOINT_GROUP = "elevgrid.tile_providers"
POINT_ENTRYPOINT_GROUP = "elevgrid.point_providers"

LOGGER = logging.getLogger(__name__)

_BUILTIN_TILE_PROVIDERS: dict[str, TileFactory] = {
    "aws": AwsTerrainTiles,
    "terrarium": TerrariumTiles,
    "mapbox": MapboxTerrainRgb,
}

_BUILTIN_POINT_PROVIDERS: dict[str, PointFactory] = {
    "epqs": EpqsPointProvider,
    "opentopodata": OpenTopoDataPointProvider,
    "aws": TileSamplingPointProvider,
    "terrarium": lambda: TileSamplingPointProvider(TerrariumTiles()),
    "mapbox": lambda: TileSamplingPointProvider(MapboxTerrainRgb()),
}


def _load_entrypoints(group: str) -> dict[str, Callable[[], object]]:
    """Load provider factories from package entrypoints."""
    factories: dict[str, Callable[[], object]] = {}
    try:
        entry_points = metadata.entry_points(group=group)
    except Exception as exc:  # pragma: no cover - entrypoint discovery failures are rare
        LOGGER.warning("Failed to read provider entrypoints: %s", exc)
        return factories
    for entry_point in entry_points:
        try:
            candidate = entry_point.load()
        except Exception as exc:
            LOGGER.warning("Failed to load provider entrypoint '%s': %s", entry_point.name, exc)
            continue
        if not callable(candidate):
            LOGGER.warning("Provider entrypoint '%s' is not callable.", entry_point.name)
            continue
        factories[entry_point.name] = candidate
    return factories


def _merge(builtins: dict[str, Callable[[], object]], group: str) -> dict[str, Callable[[], object]]:
    factories = dict(builtins)
    for name, factory in _load_entrypoints(group).items():
        if name in factories:
            LOGGER.warning("Provider '%s' already registered; skipping entrypoint.", name)
            continue
        factories[name] = factory
    return factories


@lru_cache(maxsize=1)
def _tile_factories() -> dict[str, TileFactory]:
    """Return merged tile provider factories from built-ins and entrypoints."""
    return cast(dict[str, TileFactory], _merge(dict(_BUILTIN_TILE_PROVIDERS), TILE_ENTRYPOINT_GROUP))


@lru_cache(maxsize=1)
def _point_factories() -> dict[str, PointFactory]:
    """Return merged point provider factories from built-ins and entrypoints."""
    return cast(
        dict[str, PointFactory],
        _merge(dict(_BUILTIN_POINT_PROVIDERS), POINT_ENTRYPOINT_GROUP),
    )


def refresh_providers() -> None:
    """Clear cached provider factories and reload on demand."""
    _tile_factories.cache_clear()
    _point_factories.cache_clear()


def get_tile_provider(name: str) -> TileProvider:
    """Return a tile provider instance for the given name."""
    try:
        factory = _tile_factories()[name]
    except KeyError as exc:
        known = ", ".join(sorted(_tile_factories()))
        raise ConfigurationError(f"Unknown tile provider: {name} (known: {known})") from exc
    return factory()


def get_point_provider(name: str) -> AnyPointProvider:
    """Return a point provider instance for the given name."""
    try:
        factory = _point_factories()[name]
    except KeyError as exc:
        known = ", ".join(sorted(_point_factories()))
        raise ConfigurationError(f"Unknown point provider: {name} (known: {known})") from exc
    return factory()


def list_tile_providers() -> dict[str, TileProvider]:
    """Return a mapping of tile provider names to instances."""
    providers: dict[str, TileProvider] = {}
    for name, factory in _tile_factories().items():
        try:
            providers[name] = factory()
        except Exception as exc:
            LOGGER.warning("Skipping provider '%s' because it failed to initialize: %s", name, exc)
    return providers


def list_point_providers() -> dict[str, AnyPointProvider]:
    """Return a mapping of point provider names to instances."""
    providers: dict[str, AnyPointProvider] = {}
    for name, factory in _point_factories().items():
        try:
            providers[name] = factory()
        except Exception as exc:
            LOGGER.warning("Skipping provider '%s' because it failed to initialize: %s", name, exc)
    return providers
