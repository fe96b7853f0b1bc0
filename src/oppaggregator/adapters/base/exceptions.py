"""Adapter-specific exceptions."""


class AdapterError(Exception):
    """Base exception for adapter errors."""


class ConfigurationError(AdapterError):
    """Raised when adapter configuration is invalid or still a placeholder."""


class AdapterDisabledError(AdapterError):
    """Raised when a disabled adapter is asked to search."""


class RateLimitExceededError(AdapterError):
    """Raised when the adapter's request window is exhausted.

    The call fails fast; nothing is queued.
    """


class TransientError(AdapterError):
    """Network, timeout or throttling failure worth retrying."""


class AdapterFailureError(AdapterError):
    """Raised when retries are exhausted or the upstream rejects the request."""
