"""Failures raised while running a fetch attempt."""

from __future__ import annotations


class FetchError(Exception):
    """Base class for failures that end an attempt in the error phase."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkFailure(FetchError):
    pass


class HttpStatusFailure(FetchError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP error! Status: {status_code}")
        self.status_code = status_code


class DeserializationFailure(FetchError):
    pass


class CacheFailure(FetchError):
    """Store errors; caching is best-effort so these are logged, never surfaced."""


class CacheReadFailure(CacheFailure):
    pass


class CacheWriteFailure(CacheFailure):
    pass


class FetchCancelled(Exception):
    """Raised by a transport when the attempt's cancellation token fires."""


def describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


__all__ = [
    "CacheFailure",
    "CacheReadFailure",
    "CacheWriteFailure",
    "DeserializationFailure",
    "FetchCancelled",
    "FetchError",
    "HttpStatusFailure",
    "NetworkFailure",
    "describe",
]
