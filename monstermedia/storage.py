"""Storage interface for users and VIP requests, plus an in-memory backend.

All reads and writes happen inside a :class:`StorageUnit` obtained from
:meth:`Storage.atomic`. A unit is all-or-nothing: if the ``with`` block raises,
none of the writes performed through the unit remain visible.
"""

from __future__ import annotations

import abc
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import ContextManager, Dict, Iterator, List, Optional

from .errors import Conflict
from .models import User, UserPatch, VipRequest, VipRequestStatus


def current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class StorageUnit(abc.ABC):
    """Operations available inside a single atomic unit of work."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @abc.abstractmethod
    def insert_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        is_vip: bool = False,
        is_admin: bool = False,
    ) -> User:
        """Persist a new user. Raises :class:`Conflict` on a duplicate username or email."""

    @abc.abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abc.abstractmethod
    def get_password_hash(self, user_id: int) -> Optional[str]: ...

    @abc.abstractmethod
    def list_users(self) -> List[User]: ...

    @abc.abstractmethod
    def update_user(self, user_id: int, patch: UserPatch) -> Optional[User]:
        """Apply ``patch`` and return the refreshed user, or ``None`` if it does not exist."""

    # ------------------------------------------------------------------
    # VIP requests
    # ------------------------------------------------------------------
    @abc.abstractmethod
    def insert_vip_request(
        self,
        *,
        email: str,
        reason: Optional[str],
        user_id: Optional[int],
    ) -> VipRequest: ...

    @abc.abstractmethod
    def get_vip_request(self, request_id: int) -> Optional[VipRequest]: ...

    @abc.abstractmethod
    def list_vip_requests(self, status: VipRequestStatus) -> List[VipRequest]:
        """Return requests with ``status`` ordered by creation time, oldest first."""

    @abc.abstractmethod
    def transition_vip_request(
        self,
        request_id: int,
        *,
        expected: VipRequestStatus,
        status: VipRequestStatus,
    ) -> bool:
        """Move a request from ``expected`` to ``status``.

        Returns ``False`` without writing anything when the stored status is not
        ``expected`` (or the request does not exist).
        """


class Storage(abc.ABC):
    """A user directory and VIP request ledger with atomic units of work."""

    @abc.abstractmethod
    def initialize(self) -> None:
        """Prepare the backing store (create tables, etc.)."""

    @abc.abstractmethod
    def atomic(self) -> ContextManager[StorageUnit]:
        """Return a context manager yielding a :class:`StorageUnit`."""

    def get_user(self, user_id: int) -> Optional[User]:
        with self.atomic() as unit:
            return unit.get_user(user_id)

    def list_users(self) -> List[User]:
        with self.atomic() as unit:
            return unit.list_users()

    def get_vip_request(self, request_id: int) -> Optional[VipRequest]:
        with self.atomic() as unit:
            return unit.get_vip_request(request_id)


class _InMemoryUnit(StorageUnit):
    def __init__(self, store: "InMemoryStorage") -> None:
        self._store = store

    def insert_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        is_vip: bool = False,
        is_admin: bool = False,
    ) -> User:
        store = self._store
        if self.get_user_by_username(username) is not None:
            raise Conflict("Username already exists")
        if self.get_user_by_email(email) is not None:
            raise Conflict("Email already exists")

        user = User(
            id=store._next_user_id,
            username=username,
            email=email.lower(),
            is_vip=is_vip,
            is_admin=is_admin,
            created_at=current_timestamp(),
        )
        store._next_user_id += 1
        store._users[user.id] = user
        store._password_hashes[user.id] = password_hash
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        return self._store._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        for user in self._store._users.values():
            if user.username == username:
                return user
        return None

    def get_user_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        for user in self._store._users.values():
            if user.email == normalized:
                return user
        return None

    def get_password_hash(self, user_id: int) -> Optional[str]:
        return self._store._password_hashes.get(user_id)

    def list_users(self) -> List[User]:
        return sorted(self._store._users.values(), key=lambda user: user.id)

    def update_user(self, user_id: int, patch: UserPatch) -> Optional[User]:
        user = self.get_user(user_id)
        if user is None:
            return None

        changes: Dict[str, object] = {}
        if patch.username is not None and patch.username != user.username:
            if self.get_user_by_username(patch.username) is not None:
                raise Conflict("Username already exists")
            changes["username"] = patch.username
        if patch.email is not None and patch.email.lower() != user.email:
            if self.get_user_by_email(patch.email) is not None:
                raise Conflict("Email already exists")
            changes["email"] = patch.email.lower()
        if patch.is_vip is not None:
            changes["is_vip"] = patch.is_vip
        if patch.is_admin is not None:
            changes["is_admin"] = patch.is_admin

        updated = replace(user, **changes)
        self._store._users[user_id] = updated
        return updated

    def insert_vip_request(
        self,
        *,
        email: str,
        reason: Optional[str],
        user_id: Optional[int],
    ) -> VipRequest:
        store = self._store
        request = VipRequest(
            id=store._next_request_id,
            user_id=user_id,
            email=email,
            reason=reason,
            status=VipRequestStatus.PENDING,
            created_at=current_timestamp(),
        )
        store._next_request_id += 1
        store._vip_requests[request.id] = request
        return request

    def get_vip_request(self, request_id: int) -> Optional[VipRequest]:
        return self._store._vip_requests.get(request_id)

    def list_vip_requests(self, status: VipRequestStatus) -> List[VipRequest]:
        matching = [item for item in self._store._vip_requests.values() if item.status is status]
        return sorted(matching, key=lambda item: (item.created_at, item.id))

    def transition_vip_request(
        self,
        request_id: int,
        *,
        expected: VipRequestStatus,
        status: VipRequestStatus,
    ) -> bool:
        request = self.get_vip_request(request_id)
        if request is None or request.status is not expected:
            return False
        self._store._vip_requests[request_id] = replace(
            request,
            status=status,
            decided_at=current_timestamp(),
        )
        return True


class InMemoryStorage(Storage):
    """Dictionary-backed storage keyed by incrementing integer ids.

    Units are serialised with a re-entrant lock. A unit that raises restores the
    snapshot taken when it started.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: Dict[int, User] = {}
        self._password_hashes: Dict[int, str] = {}
        self._vip_requests: Dict[int, VipRequest] = {}
        self._next_user_id = 1
        self._next_request_id = 1

    def initialize(self) -> None:
        return None

    @contextmanager
    def atomic(self) -> Iterator[StorageUnit]:
        with self._lock:
            snapshot = (
                dict(self._users),
                dict(self._password_hashes),
                dict(self._vip_requests),
                self._next_user_id,
                self._next_request_id,
            )
            try:
                yield _InMemoryUnit(self)
            except BaseException:
                (
                    self._users,
                    self._password_hashes,
                    self._vip_requests,
                    self._next_user_id,
                    self._next_request_id,
                ) = snapshot
                raise


__all__ = ["InMemoryStorage", "Storage", "StorageUnit", "current_timestamp"]
