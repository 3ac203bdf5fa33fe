"""
Domain errors raised by the attendance services.

The web adapter maps each class to an HTTP status via `status_code` and
returns `{"error": message}`; services never build HTTP responses.
"""
from __future__ import annotations


class DomainError(Exception):
    status_code = 400
    # Machine-readable reason sent alongside `error`; None omits it.
    code: str | None = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(DomainError):
    status_code = 400


class Conflict(DomainError):
    """Request clashes with current state (duplicate check-in, off day)."""

    status_code = 400
    code = "conflict"


class Forbidden(DomainError):
    status_code = 403


class NotFound(DomainError):
    status_code = 404


__all__ = ["DomainError", "BadRequest", "Conflict", "Forbidden", "NotFound"]
