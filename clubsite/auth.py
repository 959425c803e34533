"""Login against the member/bearer registries and role checks."""

from __future__ import annotations

import logging
from typing import Optional

import anyio

from .credentials import Credential, CredentialIssuer
from .errors import BadRequest, Forbidden, Unauthorized
from .models import Role, UserDirectory
from .passwords import verify_password
from .store import FlatFileStore

logger = logging.getLogger("clubsite.auth")


def require_role(credential: Credential, role: Role) -> Credential:
    if credential.role is not role:
        raise Forbidden("Forbidden")
    return credential


class AuthGate:
    """Issue credentials to registered users and verify presented tokens."""

    def __init__(self, store: FlatFileStore, issuer: CredentialIssuer) -> None:
        self._store = store
        self._issuer = issuer

    @property
    def issuer(self) -> CredentialIssuer:
        return self._issuer

    async def load_directory(self) -> UserDirectory:
        document = await anyio.to_thread.run_sync(self._store.load, "users")
        return UserDirectory.from_document(document)

    async def login(self, email: Optional[str], role: Optional[str], password: Optional[str] = None) -> Credential:
        if not email or not role:
            raise BadRequest("email and role required")

        requested = Role.normalise(role)
        directory = await self.load_directory()

        user = directory.find(email)
        if user is None:
            logger.warning("Login attempt for unregistered address %s", email)
            raise Unauthorized("Not registered")

        if requested is Role.BEARER and not directory.is_bearer(email):
            logger.warning("Member %s requested bearer access", email)
            raise Forbidden("Not a bearer")

        if user.password_hash is not None and not verify_password(password or "", user.password_hash):
            logger.warning("Failed login for %s", email)
            raise Unauthorized("Invalid credentials")

        credential = self._issuer.issue(user.email, requested)
        logger.info("%s signed in as %s", user.email, requested.value)
        return credential

    def verify(self, token: Optional[str]) -> Credential:
        if not token:
            raise Unauthorized("Unauthorized")
        return self._issuer.verify(token)


__all__ = ["AuthGate", "require_role"]
