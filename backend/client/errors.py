"""
Client-side error taxonomy.

Every failure the API client surfaces is an `ApiError` carrying the HTTP
status (0 for transport failures and missing credentials) and the message the
server put into `{"error": ...}`.
"""
from __future__ import annotations

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
CONFLICT_CODE = "conflict"


class ApiError(Exception):
    status = 0

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class AuthenticationRequired(ApiError):
    """No usable access token; raised before any request is sent."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status=0)


class BadRequest(ApiError):
    status = 400


class Conflict(BadRequest):
    status = 409


class Unauthorized(ApiError):
    status = 401


class RefreshFailed(Unauthorized):
    """A 401 could not be recovered because the refresh yielded no token."""


class Forbidden(ApiError):
    status = 403


class NotFound(ApiError):
    status = 404


class ServerError(ApiError):
    status = 500


class NetworkError(ApiError):
    def __init__(self, message: str = NETWORK_ERROR_MESSAGE):
        super().__init__(message, status=0)


_BY_STATUS = {
    400: BadRequest,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
}


def error_for_status(status: int, message: str, *, code: str | None = None) -> ApiError:
    """Map a failed response to its error class.

    The server reports state conflicts as 400 with `code: "conflict"`; those
    become `Conflict` (still a `BadRequest`) carrying the real status.
    """
    if status >= 500:
        return ServerError(message, status=status)
    if code == CONFLICT_CODE:
        return Conflict(message, status=status)
    cls = _BY_STATUS.get(status, ApiError)
    return cls(message, status=status)


__all__ = [
    "ApiError",
    "AuthenticationRequired",
    "BadRequest",
    "Conflict",
    "Unauthorized",
    "RefreshFailed",
    "Forbidden",
    "NotFound",
    "ServerError",
    "NetworkError",
    "NETWORK_ERROR_MESSAGE",
    "CONFLICT_CODE",
    "error_for_status",
]
