"""Typed failures raised by the transport and propagated by the cache."""

from __future__ import annotations


class TransportError(Exception):
    """Base class for every failure of an outbound API call."""


class NetworkError(TransportError):
    """No response was obtained (connection refused, DNS, timeout)."""

    def __init__(self, message: str = "Network request failed") -> None:
        super().__init__(message)
        self.message = message


class HttpError(TransportError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class Unauthorized(HttpError):
    """The server answered 401. Terminal for the current session."""

    def __init__(self, message: str = "Unauthorized: Please log in to continue") -> None:
        super().__init__(401, message)


__all__ = ["HttpError", "NetworkError", "TransportError", "Unauthorized"]
