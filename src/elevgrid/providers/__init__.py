"""Provider package exports.

Adapters and the registry live in submodules; import
``elevgrid.providers.registry`` to look providers up by name.
"""

from elevgrid.providers.base import (
    BatchPointProvider,
    PointProvider,
    ProviderSpec,
    RequestContext,
    TileProvider,
)

__all__ = [
    "BatchPointProvider",
    "PointProvider",
    "ProviderSpec",
    "RequestContext",
    "TileProvider",
]
