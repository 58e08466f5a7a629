"""
Webull API Error Types

Every failure surfaced by the client is a subclass of WebullError so callers
can catch the whole family with one except clause, or a single kind when
they care (e.g. RateLimitExceeded for a retry loop).
"""

from __future__ import annotations

from typing import Optional


class WebullError(Exception):
    """Base class for all client errors."""


class AuthenticationError(WebullError):
    """Login exchange failed for a reason other than bad credentials."""


class Unauthorized(WebullError):
    """Missing, expired or rejected credentials."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class RateLimitExceeded(WebullError):
    """Local window exhausted or server answered HTTP 429."""

    def __init__(self, retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limit exceeded"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(msg)


class ApiError(WebullError):
    """Non-2xx response or envelope-level failure."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"API error {code}: {message}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApiError):
            return NotImplemented
        return self.code == other.code and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.code, self.message))


class NetworkError(WebullError):
    """Transport-level failure: DNS, TLS, reset, timeout."""


class SerializationError(WebullError):
    """Malformed JSON in either direction, or a payload missing required fields."""


class InvalidRequest(WebullError):
    """Precondition violated by the caller."""


class MfaRequired(WebullError):
    """Login accepted the password but wants a verification code."""


class UnknownError(WebullError):
    """Catch-all for failures that fit no other kind."""
