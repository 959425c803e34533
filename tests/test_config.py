from __future__ import annotations

from pathlib import Path

import pytest

from clubsite.config import DEFAULT_SEED_USERS, Settings, load_seed_users
from clubsite.passwords import verify_password


def test_defaults_from_empty_environment() -> None:
    settings = Settings.from_env({})

    assert settings.port == 3000
    assert settings.base_url == "http://localhost:3000"
    assert settings.secure_cookies is False
    assert settings.mail.host is None
    assert settings.seed_users() == DEFAULT_SEED_USERS
    assert settings.data_dir.name == "data"


def test_environment_overrides(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {
            "CLUB_PORT": "8080",
            "CLUB_BASE_URL": "https://club.example.org/",
            "CLUB_SECRET": "s3cret",
            "CLUB_DATA_DIR": str(tmp_path / "data"),
            "CLUB_UPLOADS_DIR": str(tmp_path / "uploads"),
            "SMTP_HOST": "smtp.example.org",
            "SMTP_PORT": "2525",
            "SMTP_STARTTLS": "off",
            "MAIL_FROM": "club@example.org",
        }
    )

    assert settings.port == 8080
    assert settings.base_url == "https://club.example.org"
    assert settings.secure_cookies is True
    assert settings.secret == "s3cret"
    assert settings.data_dir == (tmp_path / "data").resolve()
    assert settings.uploads_dir == (tmp_path / "uploads").resolve()
    assert settings.mail.host == "smtp.example.org"
    assert settings.mail.port == 2525
    assert settings.mail.starttls is False
    assert settings.mail.sender == "club@example.org"


def test_secure_cookie_flag_can_be_forced_off() -> None:
    settings = Settings.from_env({"CLUB_BASE_URL": "https://club.example.org", "CLUB_SESSION_SECURE": "0"})

    assert settings.secure_cookies is False


def test_load_seed_users_hashes_passwords(tmp_path: Path) -> None:
    seed = tmp_path / "roster.yaml"
    seed.write_text(
        "members:\n"
        "  - email: first@example.org\n"
        "    name: First Member\n"
        "bearers:\n"
        "  - email: chair@example.org\n"
        "    password: chair-password\n",
        encoding="utf-8",
    )

    roster = load_seed_users(seed)

    assert roster["members"] == [{"email": "first@example.org", "role": "member", "name": "First Member"}]
    chair = roster["bearers"][0]
    assert chair["role"] == "bearer"
    assert "password" not in chair
    assert verify_password("chair-password", chair["passwordHash"])


def test_seed_entry_without_email_is_rejected(tmp_path: Path) -> None:
    seed = tmp_path / "roster.yaml"
    seed.write_text("members:\n  - name: Nobody\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_seed_users(seed)
