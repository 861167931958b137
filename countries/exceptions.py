"""
Exceptions raised by the countries refresh pipeline and store.

Views translate these into HTTP responses; the management command
translates them into ``CommandError``.
"""


class CountriesError(Exception):
    """Base exception for the countries app."""


class SourceUnavailable(CountriesError):
    """
    Raised when an upstream provider cannot be fetched or parsed.

    Covers network errors, timeouts, non-2xx responses, undecodable JSON
    and payloads of the wrong shape. ``endpoint`` is the URL that failed.
    """

    def __init__(self, endpoint, reason=None):
        self.endpoint = endpoint
        self.reason = reason
        message = f"Could not fetch data from {endpoint}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StorageError(CountriesError):
    """Raised when the database rejects a read or write."""


class NotFound(CountriesError):
    """Raised when no country matches the requested name."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Country not found: {name}")
