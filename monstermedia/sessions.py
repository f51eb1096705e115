"""Member sessions for the membership API and caller identity resolution."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from .models import Identity
from .storage import Storage

logger = logging.getLogger("monstermedia.sessions")

DEFAULT_SESSION_TTL = timedelta(hours=24)


@dataclass
class _MemberSession:
    user_id: int
    last_seen: datetime


class SessionManager:
    """Opaque cookie tokens mapped to member ids, held in process memory.

    A session stays alive while the member keeps using it: every successful
    lookup restarts the idle window of ``ttl``. Sessions do not survive a
    restart of the service.
    """

    def __init__(self, *, ttl: timedelta = DEFAULT_SESSION_TTL) -> None:
        self._ttl = ttl
        self._by_token: Dict[str, _MemberSession] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        """Cookie lifetime in seconds, matching the idle window."""
        return int(self._ttl.total_seconds())

    def create(self, user_id: int) -> str:
        """Sign ``user_id`` in and return the token for the session cookie."""
        token = secrets.token_urlsafe(32)
        now = self._now()
        with self._lock:
            self._sweep(now)
            self._by_token[token] = _MemberSession(user_id=user_id, last_seen=now)
        return token

    def resolve(self, token: str) -> Optional[int]:
        """Return the member id behind ``token``, or ``None`` once it has lapsed."""
        now = self._now()
        with self._lock:
            session = self._by_token.get(token)
            if session is None:
                return None
            if self._lapsed(session, now):
                del self._by_token[token]
                return None
            session.last_seen = now
            return session.user_id

    def destroy(self, token: str) -> None:
        with self._lock:
            self._by_token.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_token)

    def _lapsed(self, session: _MemberSession, now: datetime) -> bool:
        return now - session.last_seen >= self._ttl

    def _sweep(self, now: datetime) -> None:
        # Caller holds the lock.
        stale = [token for token, session in self._by_token.items() if self._lapsed(session, now)]
        for token in stale:
            del self._by_token[token]
        if stale:
            logger.debug("Expired %s idle member session(s)", len(stale))

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


class SessionAuthenticator:
    """Map a session token to the caller's identity.

    Role flags are read from storage on every call, so a flag change is visible
    on the caller's next request.
    """

    def __init__(self, sessions: SessionManager, storage: Storage) -> None:
        self._sessions = sessions
        self._storage = storage

    def resolve_session(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        user_id = self._sessions.resolve(token)
        if user_id is None:
            return None
        user = self._storage.get_user(user_id)
        if user is None:
            logger.info("Dropping session for missing user %s", user_id)
            self._sessions.destroy(token)
            return None
        return Identity.from_user(user)


__all__ = ["SessionAuthenticator", "SessionManager"]
