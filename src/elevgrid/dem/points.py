"""Point elevation resolution with index-keyed result slots."""

from __future__ import annotations

import logging
from typing import Any, Sequence, Union

from elevgrid.dem.crs import transform_points
from elevgrid.dem.jobs import JobResult, run_jobs
from elevgrid.dem.models import PointRequest, PointResult
from elevgrid.errors import ConfigurationError, ResolutionError
from elevgrid.providers.base import BatchPointProvider, PointProvider, RequestContext

LOGGER = logging.getLogger(__name__)

AnyPointProvider = Union[PointProvider, BatchPointProvider]


def _provider_coordinates(
    requests: Sequence[PointRequest],
    target_crs: str,
) -> list[tuple[float, float]]:
    """Transform request coordinates into the provider CRS, keeping order."""
    coords: list[tuple[float, float] | None] = [None] * len(requests)
    by_crs: dict[str, list[int]] = {}
    for position, request in enumerate(requests):
        by_crs.setdefault(request.crs, []).append(position)
    for crs, positions in by_crs.items():
        xs, ys = transform_points(
            [requests[pos].x for pos in positions],
            [requests[pos].y for pos in positions],
            crs,
            target_crs,
        )
        for pos, px, py in zip(positions, xs, ys):
            coords[pos] = (px, py)
    return [coord for coord in coords if coord is not None]


def _chunks(count: int, size: int) -> list[range]:
    step = size if size > 0 else max(count, 1)
    return [range(start, min(start + step, count)) for start in range(0, count, step)]


def _raise_fatal(job: JobResult[Any, Any]) -> None:
    if isinstance(job.error, ConfigurationError):
        raise job.error


def _failure(request: PointRequest, reason: str) -> PointResult:
    LOGGER.warning("Point lookup failed: %s", reason, extra={"point": request.index})
    return PointResult(
        index=request.index,
        elevation=None,
        error=ResolutionError(request.index, reason),
    )


def _resolve_batches(
    requests: Sequence[PointRequest],
    coords: list[tuple[float, float]],
    provider: BatchPointProvider,
    context: RequestContext,
    *,
    batch_size: int,
    max_workers: int,
    timeout: float | None,
) -> list[PointResult | None]:
    slots: list[PointResult | None] = [None] * len(requests)
    chunks = _chunks(len(requests), batch_size)
    LOGGER.info(
        "Resolving %s point(s) in %s batch(es) via %s",
        len(requests),
        len(chunks),
        provider.spec().name,
    )

    def worker(chunk_id: int) -> list[float | None]:
        return provider.resolve_batch([coords[pos] for pos in chunks[chunk_id]], context)

    for job in run_jobs(list(range(len(chunks))), worker, max_workers=max_workers, timeout=timeout):
        _raise_fatal(job)
        chunk = chunks[job.key]
        values = job.value if job.ok else None
        reason = "provider returned no values"
        if job.error is not None:
            reason = f"{type(job.error).__name__}: {job.error}"
        elif values is not None and len(values) != len(chunk):
            reason = f"provider returned {len(values)} value(s) for {len(chunk)} point(s)"
            values = None
        for offset, pos in enumerate(chunk):
            request = requests[pos]
            if values is None:
                slots[pos] = _failure(request, reason)
            elif values[offset] is None:
                slots[pos] = _failure(request, "provider returned no value")
            else:
                slots[pos] = PointResult(index=request.index, elevation=float(values[offset]))
    return slots


def _resolve_singles(
    requests: Sequence[PointRequest],
    coords: list[tuple[float, float]],
    provider: PointProvider,
    context: RequestContext,
    *,
    max_workers: int,
    timeout: float | None,
) -> list[PointResult | None]:
    slots: list[PointResult | None] = [None] * len(requests)
    LOGGER.info("Resolving %s point(s) one by one via %s", len(requests), provider.spec().name)

    def worker(position: int) -> float:
        x, y = coords[position]
        return provider.resolve_point(x, y, context)

    for job in run_jobs(list(range(len(requests))), worker, max_workers=max_workers, timeout=timeout):
        _raise_fatal(job)
        request = requests[job.key]
        if job.ok and job.value is not None:
            slots[job.key] = PointResult(index=request.index, elevation=float(job.value))
        else:
            reason = f"{type(job.error).__name__}: {job.error}" if job.error else "no value"
            slots[job.key] = _failure(request, reason)
    return slots


def resolve_points(
    requests: Sequence[PointRequest],
    provider: AnyPointProvider,
    *,
    context: RequestContext,
    max_workers: int = 8,
    timeout: float | None = None,
) -> list[PointResult]:
    """Resolve elevations for every request, one result per request.

    Provider values, including coverage sentinels, are passed through
    unchanged; failed lookups carry a ResolutionError instead.
    """
    if not requests:
        return []
    spec = provider.spec()
    coords = _provider_coordinates(requests, spec.point_crs)
    if spec.batch_capable:
        slots = _resolve_batches(
            requests,
            coords,
            provider,  # type: ignore[arg-type]
            context,
            batch_size=spec.batch_size or 0,
            max_workers=max_workers,
            timeout=timeout,
        )
    else:
        slots = _resolve_singles(
            requests,
            coords,
            provider,  # type: ignore[arg-type]
            context,
            max_workers=max_workers,
            timeout=timeout,
        )
    results = [slot for slot in slots if slot is not None]
    return sorted(results, key=lambda result: result.index)


def merge_point_results(
    requests: Sequence[PointRequest],
    results: Sequence[PointResult],
    *,
    x: str = "x",
    y: str = "y",
    column: str = "elevation",
    error_column: str | None = "elevation_error",
) -> list[dict[str, Any]]:
    """Rebuild caller records with the elevation column appended.

    Mapping records keep their own keys, order and raw coordinate values;
    bare ``(x, y)`` pairs become ``{x, y}`` records.
    """
    by_index = {result.index: result for result in results}
    records: list[dict[str, Any]] = []
    for request in sorted(requests, key=lambda item: item.index):
        if request.source is not None:
            record: dict[str, Any] = dict(request.source)
        else:
            record = {x: request.x, y: request.y}
            record.update(request.attributes)
        result = by_index.get(request.index)
        record[column] = result.elevation if result else None
        if error_column:
            error = result.error if result else ResolutionError(request.index, "missing result")
            record[error_column] = str(error) if error else None
        records.append(record)
    return records
