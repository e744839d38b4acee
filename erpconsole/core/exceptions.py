"""Custom exception classes for the ERP console client."""

from dataclasses import dataclass
from typing import Any, Optional

import httpx


class ERPConsoleError(Exception):
    """Base exception for the ERP console."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class TransportError(ERPConsoleError):
    """Raised when the backend could not be reached at all."""
    pass


class ValidationError(ERPConsoleError):
    """Raised when a payload does not match the expected shape."""
    pass


class APIError(ERPConsoleError):
    """Raised for a non-2xx or unreadable response from the backend."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: Optional[str] = None,
        data: Any = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.data = data
        super().__init__(message)


class AuthenticationError(APIError):
    """Raised on 401: the session is missing or expired."""
    pass


class AuthorizationError(APIError):
    """Raised on 403: the user lacks permission."""
    pass


class ResourceNotFoundError(APIError):
    """Raised on 404."""
    pass


class UnprocessableEntityError(APIError, ValidationError):
    """Raised on 422: the backend rejected the payload."""
    pass


class ServerError(APIError):
    """Raised on 5xx."""
    pass


_STATUS_ERRORS = {
    401: AuthenticationError,
    403: AuthorizationError,
    404: ResourceNotFoundError,
    422: UnprocessableEntityError,
}


def error_from_response(response: httpx.Response) -> APIError:
    """Build the matching APIError for a failed response.

    The message comes from the JSON body's ``message`` (or ``detail``) when
    present, otherwise from the HTTP reason phrase.
    """
    status_code = response.status_code
    reason = response.reason_phrase or f"HTTP {status_code}"
    body: Any = None
    try:
        body = response.json()
    except ValueError:
        body = None

    message = reason
    error_code = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or reason
        if not isinstance(message, str):
            message = str(message)
        error_code = body.get("error")

    if status_code >= 500:
        cls = ServerError
    else:
        cls = _STATUS_ERRORS.get(status_code, APIError)
    return cls(message, status_code, error_code, body)


@dataclass(frozen=True)
class ErrorNotice:
    """User-facing rendering of an error (the toast/alert content)."""

    title: str
    message: str
    kind: str


def describe_error(exc: Exception) -> ErrorNotice:
    """Turn any client error into a notice for display."""
    if isinstance(exc, TransportError):
        return ErrorNotice(
            "Network Error",
            "Could not connect to the server. Please check your connection.",
            "network",
        )
    if isinstance(exc, AuthenticationError):
        return ErrorNotice("Authentication Required", "Please log in to continue.", "auth")
    if isinstance(exc, AuthorizationError):
        return ErrorNotice(
            "Permission Denied",
            "You do not have permission to perform this action.",
            "auth",
        )
    if isinstance(exc, ResourceNotFoundError):
        return ErrorNotice("Not Found", "The requested resource was not found.", "api")
    if isinstance(exc, ValidationError):
        return ErrorNotice(
            "Validation Error",
            getattr(exc, "message", None) or "Please check your input and try again.",
            "validation",
        )
    if isinstance(exc, ServerError):
        return ErrorNotice(
            "Server Error",
            "Something went wrong on our servers. Please try again later.",
            "server",
        )
    if isinstance(exc, ERPConsoleError):
        return ErrorNotice("Request Error", exc.message, "api")
    return ErrorNotice("Unexpected Error", str(exc) or exc.__class__.__name__, "api")
