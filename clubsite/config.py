"""Environment-backed settings and seed roster loading."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .passwords import hash_password
from .store import resolve_data_dir

logger = logging.getLogger("clubsite.config")

DEFAULT_SECRET = "dev-secret-change-me"
DEFAULT_PORT = 3000
DEFAULT_ORG_NAME = "IEEE SB SMVITM"
DEFAULT_MAIL_FROM = "ieee-sb@localhost"
CREDENTIAL_TTL = timedelta(days=7)
MAX_UPLOADS = 10

DEFAULT_SEED_USERS: Dict[str, Any] = {
    "members": [
        {"email": "member@example.com", "role": "member"},
        {"email": "student@s.smvitm.ac.in", "role": "member"},
    ],
    "bearers": [
        {"email": "chair@s.smvitm.ac.in", "role": "bearer"},
        {"email": "secretary@s.smvitm.ac.in", "role": "bearer"},
    ],
}


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class MailSettings:
    """SMTP transport options. Without a host, outgoing mail is only logged."""

    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    starttls: bool = True
    sender: str = DEFAULT_MAIL_FROM


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the site backend."""

    data_dir: Path
    uploads_dir: Path
    secret: str = DEFAULT_SECRET
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    base_url: str = f"http://localhost:{DEFAULT_PORT}"
    secure_cookies: bool = False
    org_name: str = DEFAULT_ORG_NAME
    seed_file: Optional[Path] = None
    credential_ttl: timedelta = CREDENTIAL_TTL
    max_uploads: int = MAX_UPLOADS
    mail: MailSettings = field(default_factory=MailSettings)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        port = int(env.get("CLUB_PORT", str(DEFAULT_PORT)))
        base_url = (env.get("CLUB_BASE_URL") or f"http://localhost:{port}").strip().rstrip("/")

        secret = env.get("CLUB_SECRET") or DEFAULT_SECRET
        if secret == DEFAULT_SECRET:
            logger.warning("CLUB_SECRET is not set; credentials are signed with the development secret.")

        data_dir = resolve_data_dir(env.get("CLUB_DATA_DIR"))
        uploads_raw = env.get("CLUB_UPLOADS_DIR")
        if uploads_raw:
            uploads_dir = Path(uploads_raw).expanduser().resolve(strict=False)
        else:
            uploads_dir = (Path(__file__).resolve().parent.parent / "uploads").resolve(strict=False)

        seed_raw = env.get("CLUB_SEED_FILE")
        seed_file = Path(seed_raw).expanduser().resolve(strict=False) if seed_raw else None

        secure_cookies = _env_flag(env.get("CLUB_SESSION_SECURE"), base_url.startswith("https://"))

        mail = MailSettings(
            host=(env.get("SMTP_HOST") or "").strip() or None,
            port=int(env.get("SMTP_PORT", "587")),
            username=env.get("SMTP_USER") or None,
            password=env.get("SMTP_PASS") or None,
            starttls=_env_flag(env.get("SMTP_STARTTLS"), True),
            sender=env.get("MAIL_FROM") or DEFAULT_MAIL_FROM,
        )

        return cls(
            data_dir=data_dir,
            uploads_dir=uploads_dir,
            secret=secret,
            host=env.get("CLUB_HOST", "0.0.0.0"),
            port=port,
            base_url=base_url,
            secure_cookies=secure_cookies,
            org_name=env.get("CLUB_ORG_NAME") or DEFAULT_ORG_NAME,
            seed_file=seed_file,
            mail=mail,
        )

    def seed_users(self) -> Dict[str, Any]:
        if self.seed_file is None:
            return DEFAULT_SEED_USERS
        return load_seed_users(self.seed_file)


def _seed_entry(data: Mapping[str, Any], role: str) -> Dict[str, Any]:
    email = str(data.get("email") or "").strip()
    if not email:
        raise ValueError(f"Seed {role} entries must define an email")
    entry: Dict[str, Any] = {"email": email, "role": role}
    if data.get("name"):
        entry["name"] = str(data["name"])
    if data.get("password"):
        entry["passwordHash"] = hash_password(str(data["password"]))
    return entry


def load_seed_users(path: Path) -> Dict[str, Any]:
    """Load the initial member/bearer roster from a YAML file."""

    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Seed file must be a mapping with 'members' and 'bearers' lists")

    return {
        "members": [_seed_entry(item, "member") for item in raw.get("members") or []],
        "bearers": [_seed_entry(item, "bearer") for item in raw.get("bearers") or []],
    }


__all__ = ["DEFAULT_SEED_USERS", "MailSettings", "Settings", "load_seed_users"]
