from __future__ import annotations

import logging

import pytest

from elevgrid.dem.fetch import fetch_tiles
from elevgrid.dem.models import TileCoordinate
from elevgrid.errors import ConfigurationError

from tests.utils import FakeTileProvider, make_context


def _coords(zoom: int = 3) -> list[TileCoordinate]:
    return [TileCoordinate(zoom=zoom, row=row, column=column) for row in (2, 3) for column in (4, 5, 6)]


def test_every_coordinate_is_requested_once() -> None:
    provider = FakeTileProvider()
    coords = _coords()
    result = fetch_tiles(coords, provider, context=make_context(), max_workers=4)

    assert sorted(provider.calls) == sorted(coords)
    assert result.requested == tuple(coords)
    assert [payload.coordinate for payload in result.payloads] == coords
    assert result.failures == {}
    assert result.failed == []


def test_failures_are_isolated_per_tile(caplog) -> None:
    coords = _coords()
    broken = {coords[1], coords[4]}
    provider = FakeTileProvider(fail=broken)
    with caplog.at_level(logging.WARNING):
        result = fetch_tiles(coords, provider, context=make_context(), max_workers=3)

    assert set(result.failed) == broken
    assert result.failed == [coords[1], coords[4]]
    assert len(result.payloads) == len(coords) - 2
    assert all("TransportError" in reason for reason in result.failures.values())
    tiles_logged = {getattr(record, "tile", None) for record in caplog.records}
    assert {str(coord) for coord in broken} <= tiles_logged


def test_serial_and_parallel_agree() -> None:
    coords = _coords()
    serial = fetch_tiles(coords, FakeTileProvider(), context=make_context(), max_workers=1)
    parallel = fetch_tiles(coords, FakeTileProvider(), context=make_context(), max_workers=6)
    assert [p.coordinate for p in serial.payloads] == [p.coordinate for p in parallel.payloads]


def test_timeout_marks_unfinished_tiles_failed() -> None:
    coords = _coords()
    provider = FakeTileProvider(delay=0.5)
    result = fetch_tiles(coords, provider, context=make_context(), max_workers=2, timeout=0.05)

    assert result.failed
    assert any("TimeoutError" in reason for reason in result.failures.values())


def test_configuration_errors_abort_the_fetch() -> None:
    class MisconfiguredProvider(FakeTileProvider):
        def fetch_tile(self, coordinate, context):
            raise ConfigurationError("missing API key")

    with pytest.raises(ConfigurationError, match="API key"):
        fetch_tiles(_coords(), MisconfiguredProvider(), context=make_context(), max_workers=2)
