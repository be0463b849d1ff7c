from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Iterable

import httpx
import numpy as np
from rasterio.io import MemoryFile

from elevgrid.config import ElevationConfig
from elevgrid.dem.models import TileCoordinate, TilePayload
from elevgrid.errors import TransportError
from elevgrid.providers.base import ProviderSpec, RequestContext
from elevgrid.transport import HttpTransport


def geotiff_bytes(data: np.ndarray, *, nodata: float | None = None) -> bytes:
    """Encode a single-band array as an in-memory GeoTIFF."""
    height, width = data.shape
    with MemoryFile() as memfile:
        with memfile.open(
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype=data.dtype,
            nodata=nodata,
        ) as dataset:
            dataset.write(data, 1)
        memfile.seek(0)
        return memfile.read()


def png_bytes(rgb: np.ndarray) -> bytes:
    """Encode a (3, H, W) uint8 array as an in-memory PNG."""
    _bands, height, width = rgb.shape
    with MemoryFile() as memfile:
        with memfile.open(
            driver="PNG",
            height=height,
            width=width,
            count=3,
            dtype="uint8",
        ) as dataset:
            dataset.write(rgb)
        memfile.seek(0)
        return memfile.read()


def mock_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    retries: int = 3,
    min_interval: float = 0.0,
) -> HttpTransport:
    """Return an HttpTransport backed by httpx.MockTransport with no real sleeps."""
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransport(
        client=client,
        retries=retries,
        backoff=0.0,
        min_interval=min_interval,
        sleep=lambda _seconds: None,
    )


def make_context(transport: HttpTransport | None = None, **options) -> RequestContext:
    transport = transport or mock_transport(lambda request: httpx.Response(500))
    return RequestContext(transport=transport, config=ElevationConfig(**options))


def tile_value(coordinate: TileCoordinate) -> float:
    """Deterministic per-tile fill value used by FakeTileProvider."""
    return float(coordinate.column * 100 + coordinate.row)


class FakeTileProvider:
    """Tile provider serving constant grids and failing selected tiles."""

    def __init__(
        self,
        *,
        tile_size: int = 4,
        max_zoom: int = 15,
        fail: Iterable[TileCoordinate] = (),
        delay: float = 0.0,
    ) -> None:
        self.tile_size = tile_size
        self.max_zoom = max_zoom
        self.fail = set(fail)
        self.delay = delay
        self.calls: list[TileCoordinate] = []
        self._lock = threading.Lock()

    def spec(self) -> ProviderSpec:
        return ProviderSpec(
            name="fake",
            kind="tile",
            description="fake tiles",
            tile_size=self.tile_size,
            max_zoom=self.max_zoom,
        )

    def fetch_tile(self, coordinate: TileCoordinate, context: RequestContext) -> TilePayload:
        with self._lock:
            self.calls.append(coordinate)
        if self.delay:
            threading.Event().wait(self.delay)
        if coordinate in self.fail:
            raise TransportError(f"missing {coordinate}", kind="not_found", status_code=404)
        grid = np.full((self.tile_size, self.tile_size), tile_value(coordinate), dtype=np.float32)
        return TilePayload(coordinate=coordinate, grid=grid)


def with_src_env(base_env: dict[str, str] | None = None) -> dict[str, str]:
    """Return an environment with repo src/ on PYTHONPATH."""
    env = dict(base_env or os.environ)
    repo_root = Path(__file__).resolve().parents[1]
    src_path = repo_root / "src"
    if src_path.exists():
        existing = env.get("PYTHONPATH", "")
        entries = [entry for entry in existing.split(os.pathsep) if entry]
        src_str = str(src_path)
        if src_str not in entries:
            entries.insert(0, src_str)
        env["PYTHONPATH"] = os.pathsep.join(entries)
    return env
