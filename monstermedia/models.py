"""Domain models for the MonsterMedia membership service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class VipRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not VipRequestStatus.PENDING


@dataclass(frozen=True)
class User:
    """Represents a member account stored in the user directory."""

    id: int
    username: str
    email: str
    is_vip: bool
    is_admin: bool
    created_at: datetime


@dataclass(frozen=True)
class VipRequest:
    """A request for VIP access, optionally tied to a member account."""

    id: int
    user_id: Optional[int]
    email: str
    reason: Optional[str]
    status: VipRequestStatus
    created_at: datetime
    decided_at: Optional[datetime] = None


@dataclass(frozen=True)
class UserPatch:
    """Admin-side update of a user record.

    Every attribute is optional; ``None`` leaves the stored value untouched.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    is_vip: Optional[bool] = None
    is_admin: Optional[bool] = None

    def is_empty(self) -> bool:
        return (
            self.username is None
            and self.email is None
            and self.is_vip is None
            and self.is_admin is None
        )


@dataclass(frozen=True)
class Identity:
    """The resolved caller of a request, with role flags loaded fresh."""

    user_id: int
    is_admin: bool
    is_vip: bool

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, is_admin=user.is_admin, is_vip=user.is_vip)


__all__ = ["Identity", "User", "UserPatch", "VipRequest", "VipRequestStatus"]
