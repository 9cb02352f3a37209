"""Exceptions raised by the remote client.

Callers distinguish three families of failure:
- NotConfiguredError: credentials missing, fail fast without retry
- transient errors (network, 5xx, 429): worth another attempt later
- permanent errors (other 4xx): surfaced as-is
"""

from __future__ import annotations


class RemoteError(Exception):
    """Base exception for remote API errors.

    Attributes:
        status: HTTP status code, or None when no response was received.
        code: Machine-readable error code from the response body.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str = "unknown",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    @property
    def is_transient(self) -> bool:
        """Check if the failure may succeed on a later attempt."""
        if self.status is None:
            return True
        return self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status}, {self.code})"


class NotConfiguredError(RemoteError):
    """Credentials or database id are missing."""

    def __init__(self, message: str = "Remote credentials not configured") -> None:
        super().__init__(message, status=None, code="not_configured")

    @property
    def is_transient(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.message


class TransportError(RemoteError):
    """The request never produced a response (network failure, timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=None, code="transport_error")


class RateLimitedError(RemoteError):
    """The server asked us to slow down (HTTP 429).

    Attributes:
        retry_after: Seconds to wait before resubmitting, if the server said.
    """

    def __init__(
        self,
        message: str = "Rate limited",
        retry_after: float | None = None,
        code: str = "rate_limited",
    ) -> None:
        super().__init__(message, status=429, code=code)
        self.retry_after = retry_after


class AuthenticationError(RemoteError):
    """Credential rejected (HTTP 401/403)."""


class NotFoundError(RemoteError):
    """Database or record not found (HTTP 404)."""
