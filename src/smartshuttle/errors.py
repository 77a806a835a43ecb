"""Error taxonomy for SmartShuttle."""

from typing import Optional


class SmartShuttleError(Exception):
    """Base class for all SmartShuttle errors."""


class ValidationError(SmartShuttleError):
    """A required field is missing or invalid. Never retried."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UpstreamError(SmartShuttleError):
    """A collaborator answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(SmartShuttleError):
    """A collaborator could not be reached."""

    def __init__(self, message: str, cause: str = "network"):
        super().__init__(message)
        self.cause = cause


class ConfigurationError(SmartShuttleError):
    """Server-held credentials are missing."""


class GeocodeError(SmartShuttleError):
    """Geocoding lookup failed. Handled inside GeocodeClient."""


class TransitApiError(SmartShuttleError):
    """
    Failure talking to the transit collaborator.

    Exactly one of ``status_code`` (HTTP failure) or ``cause`` (transport
    failure) is set.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, cause: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause


class TransitHttpError(TransitApiError, UpstreamError):
    """Transit API returned a non-success HTTP status."""

    def __init__(self, status_code: int):
        TransitApiError.__init__(self, f"Transit API error: {status_code}", status_code=status_code)


class TransitNetworkError(TransitApiError, TransportError):
    """Transit API was unreachable or returned an unreadable body."""

    def __init__(self, message: str):
        TransitApiError.__init__(self, message, cause="network")
