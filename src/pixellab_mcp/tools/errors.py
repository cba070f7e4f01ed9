from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    RETRYABLE = "RETRYABLE"
    TERMINAL = "TERMINAL"
    LOCAL = "LOCAL"


class PixelLabError(RuntimeError):
    """Any failure reported by, or while talking to, the PixelLab API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AuthenticationError(PixelLabError):
    pass


class ValidationError(PixelLabError):
    pass


class RateLimitError(PixelLabError):
    def __init__(self, message: str, *, status_code: int | None = 429) -> None:
        super().__init__(message, status_code=status_code, retryable=True)


class LocalToolError(RuntimeError):
    """Failure on this side of the wire: bad arguments, unreadable images."""


RATE_LIMIT_STATUSES = {429}

# Fallback only; the API does not send a machine-readable rate-limit code yet.
_RATE_LIMIT_MARKERS = (
    "wait longer between generations",
    "rate limit",
)


def is_rate_limit_status(status_code: int | None) -> bool:
    return status_code in RATE_LIMIT_STATUSES


def is_rate_limited(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, PixelLabError) and exc.retryable:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def classify(exc: BaseException) -> ErrorKind:
    if is_rate_limited(exc):
        return ErrorKind.RETRYABLE
    if isinstance(exc, PixelLabError):
        return ErrorKind.TERMINAL
    if isinstance(exc, (LocalToolError, OSError, ValueError, TypeError)):
        return ErrorKind.LOCAL
    return ErrorKind.TERMINAL
