"""Tile fetching with per-tile failure isolation."""

from __future__ import annotations

import logging
from typing import Sequence

from elevgrid.dem.jobs import run_jobs
from elevgrid.dem.models import TileCoordinate, TileFetchResult, TilePayload
from elevgrid.errors import ConfigurationError
from elevgrid.providers.base import RequestContext, TileProvider

LOGGER = logging.getLogger(__name__)


def fetch_tiles(
    coordinates: Sequence[TileCoordinate],
    provider: TileProvider,
    *,
    context: RequestContext,
    max_workers: int = 8,
    timeout: float | None = None,
) -> TileFetchResult:
    """Fetch every coordinate; failures are recorded, never raised."""
    requested = tuple(coordinates)
    name = provider.spec().name
    LOGGER.info("Fetching %s tile(s) from %s", len(requested), name)

    def worker(coordinate: TileCoordinate) -> TilePayload:
        return provider.fetch_tile(coordinate, context)

    payloads: list[TilePayload] = []
    failures: dict[TileCoordinate, str] = {}
    for job in run_jobs(requested, worker, max_workers=max_workers, timeout=timeout):
        if job.ok and job.value is not None:
            payloads.append(job.value)
            continue
        if isinstance(job.error, ConfigurationError):
            raise job.error
        message = f"{type(job.error).__name__}: {job.error}"
        failures[job.key] = message
        LOGGER.warning("Tile fetch failed: %s", message, extra={"tile": str(job.key)})

    if failures:
        LOGGER.info(
            "Fetched %s of %s tile(s) from %s",
            len(payloads),
            len(requested),
            name,
        )
    return TileFetchResult(requested=requested, payloads=tuple(payloads), failures=failures)
