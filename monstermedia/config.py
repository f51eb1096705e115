"""Configuration for the MonsterMedia membership service.

Settings come from ``MONSTERMEDIA_*`` environment variables, optionally layered
over a YAML file named by ``MONSTERMEDIA_CONFIG``. Environment values win.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .security import DEFAULT_BCRYPT_ROUNDS

STORAGE_BACKENDS = ("sqlite", "memory")


class ConfigurationError(RuntimeError):
    """Raised when the service configuration is invalid."""


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(value: Optional[str], default: int, *, name: str) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value {value!r} for {name}") from exc


@dataclass(frozen=True)
class AdminAccount:
    """An administrator account created at start-up if it is missing."""

    username: str
    email: str
    password: str

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "AdminAccount":
        required_fields = {"username", "email", "password"}
        missing = required_fields - data.keys()
        if missing:
            raise ConfigurationError(
                f"Missing required admin account fields: {', '.join(sorted(missing))}"
            )
        return AdminAccount(
            username=str(data["username"]),
            email=str(data["email"]),
            password=str(data["password"]),
        )


@dataclass(frozen=True)
class Settings:
    database_path: Path
    storage_backend: str = "sqlite"
    session_ttl_hours: int = 24
    secure_cookies: bool = True
    notify_webhook_url: Optional[str] = None
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    admins: Tuple[AdminAccount, ...] = field(default_factory=tuple)


def _load_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration file must contain a mapping at the top level")
    return raw


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from the environment and the optional YAML file."""

    env = os.environ if environ is None else environ

    file_values: Dict[str, object] = {}
    config_file = env.get("MONSTERMEDIA_CONFIG")
    if config_file:
        file_values = _load_yaml(Path(config_file).expanduser())

    def pick(env_name: str, key: str) -> Optional[str]:
        value = env.get(env_name)
        if value is not None:
            return value
        from_file = file_values.get(key)
        return None if from_file is None else str(from_file)

    storage_backend = (pick("MONSTERMEDIA_STORAGE", "storage") or "sqlite").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"Unknown storage backend {storage_backend!r}; expected one of {', '.join(STORAGE_BACKENDS)}"
        )

    session_ttl_hours = _env_int(
        pick("MONSTERMEDIA_SESSION_TTL_HOURS", "session_ttl_hours"),
        24,
        name="MONSTERMEDIA_SESSION_TTL_HOURS",
    )
    if session_ttl_hours <= 0:
        raise ConfigurationError("MONSTERMEDIA_SESSION_TTL_HOURS must be positive")

    webhook = (pick("MONSTERMEDIA_NOTIFY_WEBHOOK_URL", "notify_webhook_url") or "").strip()

    admins_raw = file_values.get("admins") or []
    if not isinstance(admins_raw, list):
        raise ConfigurationError("'admins' must be a list of accounts")
    admins: List[AdminAccount] = []
    for item in admins_raw:
        if not isinstance(item, dict):
            raise ConfigurationError("Each admin account must be a mapping")
        admins.append(AdminAccount.from_dict(item))

    return Settings(
        database_path=resolve_database_path(pick("MONSTERMEDIA_DB_PATH", "database_path")),
        storage_backend=storage_backend,
        session_ttl_hours=session_ttl_hours,
        secure_cookies=_env_bool(pick("MONSTERMEDIA_SESSION_SECURE", "session_secure"), True),
        notify_webhook_url=webhook or None,
        bcrypt_rounds=_env_int(
            pick("MONSTERMEDIA_BCRYPT_ROUNDS", "bcrypt_rounds"),
            DEFAULT_BCRYPT_ROUNDS,
            name="MONSTERMEDIA_BCRYPT_ROUNDS",
        ),
        admins=tuple(admins),
    )


__all__ = ["AdminAccount", "ConfigurationError", "Settings", "load_settings"]
