"""Typed error taxonomy shared by forge adapters, the dispatcher and the reducer.

Only :class:`GritError` subclasses cross the forge boundary. The dispatcher
turns them into :class:`FailureDetail` values carried by ``Failure`` messages;
the reducer renders those into a screen's status line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    NETWORK = "network"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    SIDE_EFFECT = "side_effect"


class GritError(Exception):
    """Base class for recoverable errors."""

    kind: ErrorKind = ErrorKind.NETWORK


class NetworkError(GritError):
    """Transient transport or server failure."""

    kind = ErrorKind.NETWORK


class TaskTimeoutError(NetworkError):
    """A task ran past its timeout."""

    kind = ErrorKind.TIMEOUT


class AuthError(GritError):
    """Credentials missing, expired or insufficient. Never retried automatically."""

    kind = ErrorKind.AUTH


class NotFoundError(GritError):
    kind = ErrorKind.NOT_FOUND


class RateLimitedError(GritError):
    """The forge throttled us; ``retry_after`` is a hint in seconds."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "rate limited", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UnsupportedOperationError(GritError):
    """The backend does not offer this capability, or no backend is registered."""

    kind = ErrorKind.UNSUPPORTED


class SideEffectError(GritError):
    """Opening a browser or writing the clipboard failed."""

    kind = ErrorKind.SIDE_EFFECT


class CacheCorruptError(GritError):
    """A disk cache record could not be decoded. Always handled as a miss."""


class InvariantViolation(AssertionError):
    """A core invariant was broken. Fatal: indicates a programming error."""


@dataclass(frozen=True, slots=True)
class FailureDetail:
    """Backend-agnostic description of a failed task."""

    kind: ErrorKind
    message: str
    retry_after: float | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> FailureDetail:
        if isinstance(exc, RateLimitedError):
            return cls(ErrorKind.RATE_LIMITED, str(exc), exc.retry_after)
        if isinstance(exc, GritError):
            return cls(exc.kind, str(exc) or type(exc).__name__)
        return cls(ErrorKind.NETWORK, str(exc) or type(exc).__name__)

    def describe(self) -> str:
        """One-line status text."""
        match self.kind:
            case ErrorKind.AUTH:
                return f"Auth error: {self.message}"
            case ErrorKind.NOT_FOUND:
                return f"Not found: {self.message}"
            case ErrorKind.RATE_LIMITED:
                if self.retry_after is not None:
                    return f"Rate limited (retry in {int(self.retry_after)}s)"
                return "Rate limited"
            case ErrorKind.TIMEOUT:
                return f"Timed out: {self.message}"
            case ErrorKind.UNSUPPORTED:
                return f"Not supported: {self.message}"
            case ErrorKind.SIDE_EFFECT:
                return f"Failed: {self.message}"
            case _:
                return f"Network error: {self.message}"
