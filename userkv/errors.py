"""Custom exceptions for the user store and its HTTP surface."""

from fastapi import status


class UserKVError(Exception):
    """Base class for all userkv errors."""


class ServiceError(UserKVError):
    """An error that is surfaced to HTTP callers as a plain-text response.

    :cvar status_code: HTTP status returned to the caller
    :cvar detail: Plain-text body returned to the caller
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"


class NotFound(ServiceError):
    """Raised when the requested user has no stored record."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found"


class InvalidRequest(ServiceError):
    """Raised when a request path matches no known route."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid path"


class StoreUnavailable(ServiceError):
    """Raised when the store is closed or the engine fails an operation."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Store unavailable"


class StartupFailure(UserKVError):
    """Raised when the store cannot be opened at process start."""
