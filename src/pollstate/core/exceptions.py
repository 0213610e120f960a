"""
Exception hierarchy for pollstate.

All package-specific exceptions inherit from PollStateError for easy catching.

Two failure kinds are deliberately not exceptions: a query with no address or
no contract resolves to its default value, and a fetch whose context changed
while it was in flight is dropped with a debug log.
"""

from __future__ import annotations

from typing import Any


class PollStateError(Exception):
    """
    Base exception for all pollstate errors.

    Example:
        >>> try:
        ...     await cache.has_claimed(3, "0xabc")
        ... except PollStateError as e:
        ...     print(f"Status lookup failed: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PollStateError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A configuration value fails validation
    - An unknown storage backend is requested
    """

    pass


class ValidationError(PollStateError):
    """
    Input validation error.

    Raised when:
    - A poll identifier is negative or not an integer
    - A network identifier string is not recognized
    """

    pass


class SourceUnavailableError(PollStateError):
    """
    A status source failed to answer.

    Raised when the indexer or the ledger node times out, returns an HTTP
    error, or returns a malformed or error-bearing payload. The status layer
    never retries these; callers decide.
    """

    source = "unknown"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code

    def __str__(self) -> str:
        return f"[{self.source}] {super().__str__()}"

    def is_rate_limited(self) -> bool:
        """Check if this is a rate limit error."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if this is a server-side error."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_transient(self) -> bool:
        """Transport failures, rate limits and 5xx responses are worth retrying."""
        if self.status_code is None:
            return bool(self.details.get("transport"))
        return self.is_rate_limited() or self.is_server_error()


class IndexerQueryError(SourceUnavailableError):
    """The GraphQL indexer failed or returned errors."""

    source = "indexer"


class LedgerReadError(SourceUnavailableError):
    """A view-function read against the full node failed."""

    source = "ledger"


__all__ = [
    "PollStateError",
    "ConfigurationError",
    "ValidationError",
    "SourceUnavailableError",
    "IndexerQueryError",
    "LedgerReadError",
]
