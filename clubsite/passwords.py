"""Password hashing for registry entries and onboarding secrets."""
from __future__ import annotations

import secrets

from passlib.context import CryptContext

# Single unsalted SHA-256 round, stored as a hex digest.
_pwd_context = CryptContext(schemes=["hex_sha256"])

_TEMP_PASSWORD_BYTES = 6


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


def generate_temp_password() -> str:
    """Return a short random secret suitable for a first login."""

    return secrets.token_urlsafe(_TEMP_PASSWORD_BYTES)


__all__ = ["generate_temp_password", "hash_password", "verify_password"]
