from __future__ import annotations

import httpx
import pytest

from elevgrid.errors import TransportError
from elevgrid.transport import HttpTransport, RateLimiter, backoff_delay

from tests.utils import mock_transport


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_retries_server_errors_then_succeeds() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, content=b"payload")

    transport = mock_transport(handler)
    assert transport.get("https://tiles.example/1/2/3.tif") == b"payload"
    assert len(calls) == 2


def test_not_found_is_not_retried() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(404)

    transport = mock_transport(handler)
    with pytest.raises(TransportError) as excinfo:
        transport.get("https://tiles.example/1/2/3.tif")
    assert excinfo.value.kind == "not_found"
    assert excinfo.value.status_code == 404
    assert len(calls) == 1


def test_rate_limit_exhausts_retries() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429, headers={"Retry-After": "0"})

    transport = mock_transport(handler, retries=2)
    with pytest.raises(TransportError) as excinfo:
        transport.get("https://api.example/v1/lookup")
    assert excinfo.value.kind == "rate_limit"
    assert len(calls) == 3


def test_client_errors_fail_fast() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(401)

    with pytest.raises(TransportError) as excinfo:
        mock_transport(handler).get("https://api.example/v1/lookup")
    assert excinfo.value.kind == "http"
    assert excinfo.value.status_code == 401
    assert len(calls) == 1


def test_network_errors_are_retried_then_reported() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    transport = mock_transport(handler, retries=1)
    with pytest.raises(TransportError) as excinfo:
        transport.get("https://api.example/v1/lookup")
    assert excinfo.value.kind == "network"
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert len(calls) == 2


def test_error_urls_drop_query_strings() -> None:
    transport = mock_transport(lambda request: httpx.Response(403))
    with pytest.raises(TransportError) as excinfo:
        transport.get("https://api.example/tile.pngraw?access_token=secret")
    assert "secret" not in str(excinfo.value)
    assert excinfo.value.url == "https://api.example/tile.pngraw"


def test_no_attempts_raise_transport_error() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    transport = mock_transport(handler)
    transport.retries = -1
    with pytest.raises(TransportError, match="No request attempted") as excinfo:
        transport.get("https://api.example/tile.tif?key=secret")
    assert excinfo.value.url == "https://api.example/tile.tif"
    assert calls == []


def test_get_json_and_invalid_json() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/good":
            assert request.url.params["x"] == "1.5"
            return httpx.Response(200, json={"value": 12.5})
        return httpx.Response(200, content=b"<html>")

    transport = mock_transport(handler)
    assert transport.get_json("https://api.example/good", params={"x": 1.5}) == {"value": 12.5}
    with pytest.raises(TransportError, match="Invalid JSON"):
        transport.get_json("https://api.example/bad")


def test_retry_after_header_is_honoured() -> None:
    sleeps: list[float] = []
    responses = iter([httpx.Response(503, headers={"Retry-After": "2"}), httpx.Response(200)])
    client = httpx.Client(transport=httpx.MockTransport(lambda request: next(responses)))
    transport = HttpTransport(client=client, retries=1, backoff=0.0, sleep=sleeps.append)
    transport.get("https://api.example/")
    assert sleeps == [2.0]


def test_owned_client_is_closed_on_exit() -> None:
    with HttpTransport(timeout=1.0) as transport:
        client = transport.client
        assert "elevgrid/" in client.headers["User-Agent"]
    assert client.is_closed


def test_rate_limiter_spaces_requests() -> None:
    clock = FakeClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    for _ in range(3):
        limiter.acquire()
    assert clock.sleeps == [1.0, 1.0]


def test_rate_limiter_disabled() -> None:
    clock = FakeClock()
    limiter = RateLimiter(0.0, clock=clock, sleep=clock.sleep)
    limiter.acquire()
    limiter.acquire()
    assert clock.sleeps == []


def test_backoff_grows_and_is_capped() -> None:
    assert 0.5 <= backoff_delay(0, 0.5) <= 1.0
    assert 2.0 <= backoff_delay(2, 0.5) <= 2.5
    assert backoff_delay(20, 0.5) == 30.0
