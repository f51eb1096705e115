"""Account directory service: registration, login, and admin user updates."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .errors import NotFound
from .models import Identity, User, UserPatch
from .security import (
    DEFAULT_BCRYPT_ROUNDS,
    hash_password,
    require_admin,
    require_authenticated,
    validate_password,
    verify_password,
)
from .storage import Storage
from .validation import normalize_email, normalize_username

logger = logging.getLogger("monstermedia.accounts")


class AccountService:
    def __init__(self, storage: Storage, *, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._storage = storage
        self._bcrypt_rounds = bcrypt_rounds

    def register(
        self,
        username: Optional[str],
        email: Optional[str],
        password: str,
        *,
        is_vip: bool = False,
        is_admin: bool = False,
    ) -> User:
        """Create a member account. New members are neither VIP nor admin unless requested."""

        normalized_username = normalize_username(username)
        normalized_email = normalize_email(email).lower()
        validate_password(password)
        password_hash = hash_password(password, rounds=self._bcrypt_rounds)

        with self._storage.atomic() as unit:
            user = unit.insert_user(
                username=normalized_username,
                email=normalized_email,
                password_hash=password_hash,
                is_vip=is_vip,
                is_admin=is_admin,
            )

        logger.info("Registered user %s (%s)", user.id, user.username)
        return user

    def authenticate(self, login: str, password: str) -> Optional[User]:
        """Return the user for a username (or email) and password pair."""

        candidate = (login or "").strip()
        if not candidate or not password:
            return None

        with self._storage.atomic() as unit:
            user = unit.get_user_by_username(candidate)
            if user is None and "@" in candidate:
                user = unit.get_user_by_email(candidate)
            stored_hash = unit.get_password_hash(user.id) if user is not None else None

        if user is None or not stored_hash or not verify_password(password, stored_hash):
            logger.warning("Failed login attempt for %s", candidate)
            return None
        return user

    def get_profile(self, *, caller: Optional[Identity]) -> User:
        identity = require_authenticated(caller)
        user = self._storage.get_user(identity.user_id)
        if user is None:
            raise NotFound()
        return user

    def list_users(self, *, caller: Optional[Identity]) -> List[User]:
        require_admin(caller)
        return self._storage.list_users()

    def update_user(self, user_id: int, patch: UserPatch, *, caller: Optional[Identity]) -> User:
        admin = require_admin(caller)
        if patch.username is not None:
            patch = replace(patch, username=normalize_username(patch.username))
        if patch.email is not None:
            patch = replace(patch, email=normalize_email(patch.email).lower())

        with self._storage.atomic() as unit:
            updated = unit.update_user(user_id, patch)
        if updated is None:
            raise NotFound()

        logger.info("Admin %s updated user %s", admin.user_id, user_id)
        return updated

    def ensure_admin(self, username: str, email: str, password: str) -> User:
        """Create an admin+VIP account, or promote the existing one with that email."""

        normalized_email = normalize_email(email).lower()
        with self._storage.atomic() as unit:
            existing = unit.get_user_by_email(normalized_email)
            if existing is not None:
                if existing.is_admin and existing.is_vip:
                    return existing
                promoted = unit.update_user(existing.id, UserPatch(is_admin=True, is_vip=True))
                if promoted is None:  # pragma: no cover - row read in the same unit
                    raise NotFound()
                logger.info("Promoted user %s to admin", promoted.id)
                return promoted

        return self.register(username, normalized_email, password, is_vip=True, is_admin=True)


__all__ = ["AccountService"]
