"""Error taxonomy shared by the store, the auth gate and the HTTP layer."""

from __future__ import annotations


class ClubError(Exception):
    """Base class for failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(ClubError):
    status_code = 400


class Unauthorized(ClubError):
    status_code = 401


class InvalidToken(Unauthorized):
    """Raised when a credential fails signature or expiry checks."""


class Forbidden(ClubError):
    status_code = 403


class NotFound(ClubError):
    status_code = 404


class Conflict(ClubError):
    status_code = 409


class StoreError(ClubError, OSError):
    """A collection file is missing, unreadable, or malformed."""

    status_code = 500


__all__ = [
    "BadRequest",
    "ClubError",
    "Conflict",
    "Forbidden",
    "InvalidToken",
    "NotFound",
    "StoreError",
    "Unauthorized",
]
