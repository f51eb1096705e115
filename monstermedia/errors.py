"""Error taxonomy shared by the membership core and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class MonsterMediaError(RuntimeError):
    """Base class for errors surfaced to API callers."""

    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Unauthenticated(MonsterMediaError):
    """Raised when no valid session accompanies a protected call."""

    default_message = "Authentication required"


class Forbidden(MonsterMediaError):
    """Raised when the caller is authenticated but lacks the required role."""

    default_message = "You do not have permission to perform this action"


class ValidationError(MonsterMediaError):
    """Raised for malformed input; ``field`` names the offending attribute."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class NotFound(MonsterMediaError):
    default_message = "Not found"


class InvalidState(MonsterMediaError):
    """Raised when a VIP request is no longer pending."""

    default_message = "This request has already been decided"


class Conflict(MonsterMediaError):
    """Raised when a unique attribute (username, email) is already taken."""

    default_message = "A conflicting record already exists"


__all__ = [
    "Conflict",
    "Forbidden",
    "InvalidState",
    "MonsterMediaError",
    "NotFound",
    "Unauthenticated",
    "ValidationError",
]
