from __future__ import annotations

import threading
import time

import pytest

from elevgrid.dem.jobs import coerce_workers, run_jobs


def test_coerce_workers() -> None:
    assert coerce_workers(8, 3) == 3
    assert coerce_workers(2, 10) == 2
    assert coerce_workers(4, 0) == 1
    assert coerce_workers(0, 5) >= 1
    with pytest.raises(ValueError):
        coerce_workers(-1, 5)


@pytest.mark.parametrize("workers", [1, 4])
def test_results_follow_key_order(workers) -> None:
    keys = [5, 1, 4, 2, 3]

    def worker(key: int) -> int:
        time.sleep(0.01 * key)
        return key * 10

    results = run_jobs(keys, worker, max_workers=workers)
    assert [result.key for result in results] == keys
    assert [result.value for result in results] == [50, 10, 40, 20, 30]
    assert all(result.ok for result in results)


@pytest.mark.parametrize("workers", [1, 3])
def test_errors_are_captured_per_key(workers) -> None:
    def worker(key: str) -> str:
        if key == "b":
            raise RuntimeError("boom")
        return key.upper()

    results = run_jobs(["a", "b", "c"], worker, max_workers=workers)
    assert [result.value for result in results] == ["A", None, "C"]
    assert isinstance(results[1].error, RuntimeError)
    assert not results[1].ok


def test_jobs_run_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=2)

    def worker(key: int) -> int:
        barrier.wait()
        return key

    results = run_jobs([1, 2, 3], worker, max_workers=3)
    assert [result.value for result in results] == [1, 2, 3]


def test_deadline_keeps_finished_results() -> None:
    release = threading.Event()

    def worker(key: int) -> int:
        if key == 2:
            release.wait(2)
        return key

    try:
        results = run_jobs([1, 2, 3], worker, max_workers=3, timeout=0.2)
    finally:
        release.set()
    assert results[0].value == 1
    assert results[2].value == 3
    assert isinstance(results[1].error, TimeoutError)


@pytest.mark.parametrize("keys", [[1], [1, 2]])
def test_deadline_applies_to_single_worker(keys) -> None:
    release = threading.Event()

    def worker(key: int) -> int:
        release.wait(2)
        return key

    started = time.monotonic()
    try:
        results = run_jobs(keys, worker, max_workers=1, timeout=0.2)
    finally:
        release.set()
    assert time.monotonic() - started < 1.5
    assert all(isinstance(result.error, TimeoutError) for result in results)


def test_empty_keys() -> None:
    assert run_jobs([], lambda key: key) == []
