"""Input normalisation helpers shared by the account and VIP services."""
from __future__ import annotations

from typing import Optional

from email_validator import EmailNotValidError, validate_email

from .errors import ValidationError

USERNAME_MAX_LENGTH = 64


def normalize_email(value: Optional[str], *, field: str = "email") -> str:
    """Return the stripped address, raising :class:`ValidationError` when malformed."""

    candidate = (value or "").strip()
    if not candidate:
        raise ValidationError(field, "Email is required")
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(field, f"Invalid email address: {exc}") from exc
    return candidate


def normalize_username(value: Optional[str]) -> str:
    candidate = (value or "").strip()
    if not candidate:
        raise ValidationError("username", "Username is required")
    if len(candidate) > USERNAME_MAX_LENGTH:
        raise ValidationError(
            "username",
            f"Username must not exceed {USERNAME_MAX_LENGTH} characters",
        )
    return candidate


def normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


__all__ = ["normalize_email", "normalize_optional_text", "normalize_username"]
