"""Stateless, expiring login credentials."""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken as FernetInvalidToken

from .config import CREDENTIAL_TTL
from .errors import InvalidToken
from .models import Role

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class Credential:
    token: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    def claims(self) -> dict:
        return {"email": self.email, "role": self.role.value}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _build_cipher(secret: str) -> Fernet:
    if not secret:
        raise ValueError("A signing secret must be provided")
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class CredentialIssuer:
    """Issue and verify signed tokens asserting an email and a role.

    Nothing is kept server side. A token stays valid until ``ttl`` has elapsed
    since issuance; logging out only discards the client copy.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = CREDENTIAL_TTL,
        clock: Optional[Clock] = None,
    ) -> None:
        self._cipher = _build_cipher(secret)
        self._ttl = ttl
        self._clock = clock or _utcnow

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def issue(self, email: str, role: Role) -> Credential:
        issued_at = self._clock()
        payload = json.dumps({"email": email, "role": role.value}).encode("utf-8")
        token = self._cipher.encrypt_at_time(payload, int(issued_at.timestamp()))
        return Credential(
            token=token.decode("ascii"),
            email=email,
            role=role,
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )

    def verify(self, token: str) -> Credential:
        try:
            raw = token.encode("ascii")
        except UnicodeEncodeError as exc:
            raise InvalidToken("Invalid token") from exc

        now = int(self._clock().timestamp())
        try:
            plaintext = self._cipher.decrypt_at_time(
                raw,
                ttl=int(self._ttl.total_seconds()),
                current_time=now,
            )
            issued = self._cipher.extract_timestamp(raw)
            claims = json.loads(plaintext)
            email = str(claims["email"])
            role = Role(claims["role"])
        except (FernetInvalidToken, ValueError, KeyError, TypeError) as exc:
            raise InvalidToken("Invalid token") from exc

        issued_at = datetime.fromtimestamp(issued, tz=timezone.utc)
        return Credential(
            token=token,
            email=email,
            role=role,
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )


__all__ = ["Clock", "Credential", "CredentialIssuer"]
