"""FastAPI dependencies that resolve the caller's credential."""
from __future__ import annotations

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .auth import AuthGate, require_role
from .credentials import Credential
from .models import Role

CREDENTIAL_COOKIE_NAME = "token"


class CredentialAuth:
    """Accept the credential from the ``token`` cookie or a bearer header."""

    def __init__(self, gate: AuthGate) -> None:
        self._gate = gate
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Credential:
        token = request.cookies.get(CREDENTIAL_COOKIE_NAME)
        if not token:
            credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
            if credentials is not None and credentials.scheme.lower() == "bearer":
                token = credentials.credentials
        return self._gate.verify(token)


class RoleGuard:
    """Resolve the credential and insist on a specific role."""

    def __init__(self, auth: CredentialAuth, role: Role) -> None:
        self._auth = auth
        self._role = role

    async def __call__(self, request: Request) -> Credential:
        credential = await self._auth(request)
        return require_role(credential, self._role)


__all__ = ["CREDENTIAL_COOKIE_NAME", "CredentialAuth", "RoleGuard"]
