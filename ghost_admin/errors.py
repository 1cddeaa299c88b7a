"""Errors raised by the Ghost Admin transport.

Every error is raised to the immediate caller. Nothing is retried, logged or
swallowed at this layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class GhostError(Exception):
    """Base class for ghost_admin errors."""


class ConfigError(GhostError):
    """Raised when the base address or client setup is invalid."""


class InvalidArgument(GhostError, ValueError):
    """Raised when a caller breaks the call contract (e.g. no context)."""


class SerializationError(GhostError):
    """Raised when a request body cannot be encoded as JSON."""


class TransportError(GhostError):
    """Raised when a request cannot be built or the round trip fails."""


class APIError(GhostError):
    """Raised when the API responds with a status outside [200, 300).

    The body is not inspected. Callers wanting finer classification can
    look at ``status_code`` or the attached response headers.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.status_code = response.status_code
        super().__init__(f"received non-2xx status from API: {response.status_code}")


class DecodingError(GhostError):
    """Raised when a 2xx response body cannot be decoded into the destination."""

    def __init__(self, message: str, response: httpx.Response) -> None:
        self.response = response
        super().__init__(message)


class ContextError(GhostError):
    """Base class for the errors reported by an ended context."""


class Canceled(ContextError):
    """The context was cancelled."""

    def __init__(self) -> None:
        super().__init__("context canceled")


class DeadlineExceeded(ContextError):
    """The context deadline passed."""

    def __init__(self) -> None:
        super().__init__("context deadline exceeded")
