"""Credential hashing and the role gate for protected operations."""
from __future__ import annotations

from typing import Optional

import bcrypt

from .errors import Forbidden, Unauthenticated, ValidationError
from .models import Identity

DEFAULT_BCRYPT_ROUNDS = 12

# bcrypt only considers the first 72 bytes of a secret.
PASSWORD_MAX_BYTES = 72
PASSWORD_MIN_LENGTH = 8


def validate_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            "password",
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(
            "password",
            f"Password must not exceed {PASSWORD_MAX_BYTES} bytes",
        )


def hash_password(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against its bcrypt hash."""
    encoded = password.encode("utf-8")
    if len(encoded) > PASSWORD_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False


# ----------------------------------------------------------------------
# Role gate
# ----------------------------------------------------------------------
def require_authenticated(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthenticated()
    return identity


def require_admin(identity: Optional[Identity]) -> Identity:
    caller = require_authenticated(identity)
    if not caller.is_admin:
        raise Forbidden("Admin access required")
    return caller


def require_vip(identity: Optional[Identity]) -> Identity:
    caller = require_authenticated(identity)
    if not caller.is_vip:
        raise Forbidden("VIP access required")
    return caller


__all__ = [
    "DEFAULT_BCRYPT_ROUNDS",
    "PASSWORD_MAX_BYTES",
    "PASSWORD_MIN_LENGTH",
    "hash_password",
    "require_admin",
    "require_authenticated",
    "require_vip",
    "validate_password",
    "verify_password",
]
