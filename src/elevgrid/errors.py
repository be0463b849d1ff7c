"""Exception types raised by elevgrid."""

from __future__ import annotations


class ElevgridError(Exception):
    """Base class for elevgrid failures."""


class ConfigurationError(ElevgridError, ValueError):
    """Invalid request configuration (projection, provider, credentials)."""


class UnsupportedZoomError(ElevgridError, ValueError):
    """Requested zoom level is outside the provider range."""

    def __init__(self, zoom: int, max_zoom: int) -> None:
        self.zoom = zoom
        self.max_zoom = max_zoom
        super().__init__(f"Unsupported zoom {zoom}; expected 0..{max_zoom}.")


class TransportError(ElevgridError):
    """A remote request failed after the transport retry policy."""

    def __init__(
        self,
        message: str,
        *,
        kind: str = "network",
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class EmptyMosaicError(ElevgridError, RuntimeError):
    """No tile could be fetched for a raster request."""


class ResolutionError(ElevgridError):
    """A single point lookup failed."""

    def __init__(self, index: int, message: str) -> None:
        self.index = index
        super().__init__(message)
