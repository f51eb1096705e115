from __future__ import annotations

from pathlib import Path

import pytest

from monstermedia.config import AdminAccount, ConfigurationError, load_settings


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.storage_backend == "sqlite"
    assert settings.session_ttl_hours == 24
    assert settings.secure_cookies is True
    assert settings.notify_webhook_url is None
    assert settings.database_path.name == "monstermedia.sqlite3"
    assert settings.admins == ()


def test_environment_overrides(tmp_path: Path) -> None:
    settings = load_settings(
        {
            "MONSTERMEDIA_DB_PATH": str(tmp_path / "custom.sqlite3"),
            "MONSTERMEDIA_STORAGE": "Memory",
            "MONSTERMEDIA_SESSION_TTL_HOURS": "2",
            "MONSTERMEDIA_SESSION_SECURE": "off",
            "MONSTERMEDIA_NOTIFY_WEBHOOK_URL": " https://hooks.example.com/vip ",
            "MONSTERMEDIA_BCRYPT_ROUNDS": "5",
        }
    )

    assert settings.database_path == (tmp_path / "custom.sqlite3").resolve()
    assert settings.storage_backend == "memory"
    assert settings.session_ttl_hours == 2
    assert settings.secure_cookies is False
    assert settings.notify_webhook_url == "https://hooks.example.com/vip"
    assert settings.bcrypt_rounds == 5


def test_yaml_file_supplies_values_and_admins(tmp_path: Path) -> None:
    config_path = tmp_path / "monstermedia.yaml"
    config_path.write_text(
        """
session_ttl_hours: 12
session_secure: false
admins:
  - username: Monsterwith
    email: admin@example.com
    password: change-me-please
""",
        encoding="utf-8",
    )

    settings = load_settings(
        {
            "MONSTERMEDIA_CONFIG": str(config_path),
            "MONSTERMEDIA_SESSION_TTL_HOURS": "6",
        }
    )

    assert settings.session_ttl_hours == 6
    assert settings.secure_cookies is False
    assert settings.admins == (
        AdminAccount(username="Monsterwith", email="admin@example.com", password="change-me-please"),
    )


@pytest.mark.parametrize(
    "environ",
    [
        {"MONSTERMEDIA_STORAGE": "postgres"},
        {"MONSTERMEDIA_SESSION_TTL_HOURS": "soon"},
        {"MONSTERMEDIA_SESSION_TTL_HOURS": "0"},
    ],
)
def test_invalid_settings_raise(environ) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(environ)


def test_admin_entries_require_all_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "monstermedia.yaml"
    config_path.write_text("admins:\n  - username: nobody\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="email, password"):
        load_settings({"MONSTERMEDIA_CONFIG": str(config_path)})
