"""HTTP transport with retry, backoff, and request pacing."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Callable, Mapping

import httpx

from elevgrid import __version__
from elevgrid.errors import TransportError

LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
MAX_BACKOFF_SECONDS = 30.0


class RateLimiter:
    """Enforce a minimum interval between requests across threads."""

    def __init__(
        self,
        min_interval: float = 0.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def acquire(self) -> None:
        """Block until the next request slot is available."""
        if self.min_interval <= 0:
            return
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)


def backoff_delay(attempt: int, base: float) -> float:
    """Exponential backoff with jitter for a zero-based attempt."""
    return min(MAX_BACKOFF_SECONDS, base * (2**attempt) + random.random() * base)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _sanitize_url(url: httpx.URL | str) -> str:
    """Drop query parameters (they may carry credentials) from a URL."""
    return str(url).split("?", 1)[0]


class HttpTransport:
    """Thin httpx.Client wrapper returning raw payloads or TransportError."""

    def __init__(
        self,
        *,
        timeout: float | None = 30.0,
        retries: int = 3,
        backoff: float = 0.5,
        min_interval: float = 0.0,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retries = max(0, int(retries))
        self.backoff = backoff
        self._sleep = sleep
        self.limiter = RateLimiter(min_interval, sleep=sleep)
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": f"elevgrid/{__version__}"},
        )

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _request(
        self,
        url: str,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        safe_url = _sanitize_url(url)
        last_error: TransportError | None = None
        for attempt in range(self.retries + 1):
            if attempt:
                LOGGER.debug("Retrying %s (attempt %s)", safe_url, attempt + 1)
            self.limiter.acquire()
            try:
                response = self.client.get(url, params=params, headers=headers)
            except httpx.TimeoutException as exc:
                last_error = TransportError(f"Timed out: {safe_url}", kind="network", url=safe_url)
                last_error.__cause__ = exc
            except httpx.TransportError as exc:
                last_error = TransportError(
                    f"Network error for {safe_url}: {exc}", kind="network", url=safe_url
                )
                last_error.__cause__ = exc
            else:
                status = response.status_code
                if status < 400:
                    return response
                if status == 404:
                    raise TransportError(
                        f"Not found: {safe_url}", kind="not_found", status_code=status, url=safe_url
                    )
                kind = "rate_limit" if status == 429 else "http"
                last_error = TransportError(
                    f"HTTP {status} for {safe_url}", kind=kind, status_code=status, url=safe_url
                )
                if status not in RETRYABLE_STATUS:
                    raise last_error
                if attempt < self.retries:
                    delay = _retry_after(response)
                    if delay is not None:
                        self._sleep(min(delay, MAX_BACKOFF_SECONDS))
                        continue
            if attempt < self.retries:
                self._sleep(backoff_delay(attempt, self.backoff))
        if last_error is None:
            raise TransportError(f"No request attempted for {safe_url}", url=safe_url)
        raise last_error

    def get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bytes:
        """Fetch a URL and return the response body."""
        return self._request(url, params, headers).content

    def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Fetch a URL and decode its JSON body."""
        response = self._request(url, params, headers)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON from {_sanitize_url(url)}", kind="http", url=_sanitize_url(url)
            ) from exc
