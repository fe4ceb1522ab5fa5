"""Error taxonomy for the ingestion pipeline and the single place where
external failures are classified into it.

Gemini and HTTP clients report failures with a mix of status attributes and
free-form messages. :func:`classify_error` keeps all of those string
heuristics in one spot so business logic only ever branches on
:class:`ErrorKind`.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class WardrobeIngestError(RuntimeError):
    """Base class for every error raised by the ingestion core."""


class InvalidInputError(WardrobeIngestError, ValueError):
    """Raised for bad arguments supplied by the caller."""


class ImageFetchError(WardrobeIngestError):
    """Raised when an image cannot be downloaded or decoded."""


class AuthError(WardrobeIngestError):
    """Raised when the classifier rejects our credentials. Never retried."""


class RateLimitError(WardrobeIngestError):
    """Raised for a single rate-limited classifier attempt."""


class RateLimitExceededError(WardrobeIngestError):
    """Raised once the rate-limit retry budget is spent."""

    def __init__(self, attempts: int, last_message: str) -> None:
        self.attempts = attempts
        self.last_message = last_message
        super().__init__(
            f"Classifier rate limit exceeded after {attempts} attempts. "
            f"Original error: {last_message}"
        )


class TransientError(WardrobeIngestError):
    """Raised for any other classifier failure. Surfaced without retry."""


class ResponseParseError(WardrobeIngestError):
    """Raised when classifier output is not the structure we asked for."""


class LengthMismatchError(WardrobeIngestError, ValueError):
    """Raised when comparing signatures of different lengths."""


class MergeConflictError(WardrobeIngestError):
    """Raised when an item disappears or keeps changing during a merge."""


class RepositoryError(WardrobeIngestError):
    """Raised for catalog storage failures."""


class DuplicateSignatureError(RepositoryError):
    """Raised when an insert collides with an existing (owner, signature) row."""


class StaleItemError(RepositoryError):
    """Raised when an update was based on an outdated item version."""


class ErrorKind(str, Enum):
    """Closed set of outcomes for a failed classifier call."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    TRANSIENT = "transient"


_RATE_LIMIT_MARKERS = ("rate limit", "resource_exhausted", "quota", "too many requests", "429")
_AUTH_MARKERS = ("api key", "api_key_invalid", "authentication", "unauthenticated", "unauthorized")
_AUTH_STATUS_CODES = {401, 403}


def _candidate_status_codes(error: BaseException) -> Iterable[int]:
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            yield value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None) or getattr(response, "status", None)
        if isinstance(value, int) and not isinstance(value, bool):
            yield value


def status_code_of(error: BaseException) -> Optional[int]:
    """Return the first HTTP-like status code attached to an exception."""

    return next(iter(_candidate_status_codes(error)), None)


def classify_error(error: BaseException) -> ErrorKind:
    """Map an arbitrary classifier exception onto :class:`ErrorKind`.

    Explicit status codes are trusted first; message text is only consulted
    when no decisive status is attached.
    """

    if isinstance(error, (RateLimitError, RateLimitExceededError)):
        return ErrorKind.RATE_LIMIT
    if isinstance(error, AuthError):
        return ErrorKind.AUTH

    for code in _candidate_status_codes(error):
        if code == 429:
            return ErrorKind.RATE_LIMIT
        if code in _AUTH_STATUS_CODES:
            return ErrorKind.AUTH

    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMIT
    if any(marker in message for marker in _AUTH_MARKERS):
        return ErrorKind.AUTH
    return ErrorKind.TRANSIENT


__all__ = [
    "AuthError",
    "DuplicateSignatureError",
    "ErrorKind",
    "ImageFetchError",
    "InvalidInputError",
    "LengthMismatchError",
    "MergeConflictError",
    "RateLimitError",
    "RateLimitExceededError",
    "RepositoryError",
    "ResponseParseError",
    "StaleItemError",
    "TransientError",
    "WardrobeIngestError",
    "classify_error",
    "status_code_of",
]
