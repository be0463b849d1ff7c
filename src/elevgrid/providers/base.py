"""Shared provider types and protocols for tile and point adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Protocol, Sequence

from elevgrid.dem.models import TileCoordinate, TilePayload

if TYPE_CHECKING:
    from elevgrid.config import ElevationConfig
    from elevgrid.transport import HttpTransport


@dataclass(frozen=True)
class ProviderSpec:
    """Describe provider capabilities, limits, and credentials."""

    name: str
    kind: str
    description: str
    tile_size: int | None = None
    max_zoom: int | None = None
    point_crs: str = "EPSG:4326"
    # None: one request per point; 0: unlimited batch; N: at most N per request.
    batch_size: int | None = None
    min_request_interval: float = 0.0
    api_key_env: str | None = None
    requires_api_key: bool = False
    requires_zoom: bool = False
    sentinels: Mapping[float, str] = field(default_factory=dict)

    @property
    def batch_capable(self) -> bool:
        return self.batch_size is not None


@dataclass(frozen=True)
class RequestContext:
    """Per-call collaborators handed to provider adapters."""

    transport: "HttpTransport"
    config: "ElevationConfig"


class TileProvider(Protocol):
    """Protocol implemented by raster tile adapters."""

    def spec(self) -> ProviderSpec:
        ...

    def fetch_tile(self, coordinate: TileCoordinate, context: RequestContext) -> TilePayload:
        ...


class PointProvider(Protocol):
    """Protocol implemented by single-point elevation adapters."""

    def spec(self) -> ProviderSpec:
        ...

    def resolve_point(self, x: float, y: float, context: RequestContext) -> float:
        ...


class BatchPointProvider(Protocol):
    """Protocol implemented by batch-capable point adapters.

    ``resolve_batch`` returns one value per input coordinate; ``None`` marks
    a coordinate the provider could not resolve.
    """

    def spec(self) -> ProviderSpec:
        ...

    def resolve_batch(
        self,
        coordinates: Sequence[tuple[float, float]],
        context: RequestContext,
    ) -> list[float | None]:
        ...
