"""Bounded fan-out of independent fetch jobs with keyed result slots."""

from __future__ import annotations

import os
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Sequence, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class JobResult(Generic[K, V]):
    """Per-key job output or failure."""

    key: K
    value: V | None
    error: BaseException | None

    @property
    def ok(self) -> bool:
        return self.error is None


def coerce_workers(max_workers: int, job_count: int) -> int:
    """Normalize requested worker count for a batch of jobs."""
    jobs = int(max_workers)
    if job_count <= 0:
        return 1
    if jobs < 0:
        raise ValueError("max_workers must be >= 0")
    if jobs == 0:
        cpu_count = os.cpu_count() or 1
        return max(1, min(cpu_count * 4, job_count))
    return min(jobs, job_count)


def _timed_out(key: Hashable, timeout: float) -> TimeoutError:
    return TimeoutError(f"{key} did not finish within {timeout:g}s")


def run_jobs(
    keys: Sequence[K],
    worker: Callable[[K], V],
    *,
    max_workers: int = 8,
    timeout: float | None = None,
) -> list[JobResult[K, V]]:
    """Run workers serially or via a thread pool; results follow key order.

    Worker exceptions are captured per key. With a timeout, jobs still
    pending at the deadline are abandoned and reported as TimeoutError
    while finished results are kept, even with a single worker.
    """
    results: dict[K, JobResult[K, V]] = {}
    workers = coerce_workers(max_workers, len(keys))
    deadline = None if timeout is None else time.monotonic() + timeout

    # Timed runs always use the pool so the deadline also bounds a running job.
    if deadline is None and (workers == 1 or len(keys) <= 1):
        for key in keys:
            try:
                results[key] = JobResult(key, worker(key), None)
            except Exception as exc:
                results[key] = JobResult(key, None, exc)
        return [results[key] for key in keys]

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        future_map: dict[Future[V], K] = {executor.submit(worker, key): key for key in keys}
        pending = set(future_map)
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            for future in done:
                key = future_map[future]
                try:
                    results[key] = JobResult(key, future.result(), None)
                except Exception as exc:
                    results[key] = JobResult(key, None, exc)
            if deadline is not None and time.monotonic() >= deadline:
                break
        for future in pending:
            future.cancel()
            key = future_map[future]
            results[key] = JobResult(key, None, _timed_out(key, timeout or 0.0))
    finally:
        executor.shutdown(wait=deadline is None, cancel_futures=True)
    return [results[key] for key in keys]
