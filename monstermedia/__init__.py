"""Membership backend for the MonsterMedia catalogue."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .storage import InMemoryStorage, Storage


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the membership API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "InMemoryStorage",
    "Storage",
    "create_app",
    "resolve_database_path",
]
