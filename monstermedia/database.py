"""SQLite-backed persistence for users and VIP requests."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import Conflict
from .models import User, UserPatch, VipRequest, VipRequestStatus
from .storage import Storage, StorageUnit, current_timestamp


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "monstermedia.sqlite3").resolve(strict=False)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _conflict_from_integrity_error(exc: sqlite3.IntegrityError) -> Conflict:
    message = str(exc)
    if "users.username" in message:
        return Conflict("Username already exists")
    if "users.email" in message:
        return Conflict("Email already exists")
    return Conflict()


class _SQLiteUnit(StorageUnit):
    """Storage operations bound to one connection inside an open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def insert_user(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        is_vip: bool = False,
        is_admin: bool = False,
    ) -> User:
        created_at = current_timestamp()
        try:
            cursor = self._conn.execute(
                """
                INSERT INTO users (username, email, password_hash, is_vip, is_admin, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    username,
                    email.lower(),
                    password_hash,
                    int(bool(is_vip)),
                    int(bool(is_admin)),
                    _serialize_datetime(created_at),
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise _conflict_from_integrity_error(exc) from exc

        return User(
            id=int(cursor.lastrowid),
            username=username,
            email=email.lower(),
            is_vip=bool(is_vip),
            is_admin=bool(is_admin),
            created_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_username(self, username: str) -> Optional[User]:
        row = self._conn.execute(
            "SELECT * FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._conn.execute(
            "SELECT * FROM users WHERE email = ?",
            (email.strip().lower(),),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_password_hash(self, user_id: int) -> Optional[str]:
        row = self._conn.execute(
            "SELECT password_hash FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return row["password_hash"]

    def list_users(self) -> List[User]:
        rows = self._conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def update_user(self, user_id: int, patch: UserPatch) -> Optional[User]:
        updates: List[str] = []
        values: List[object] = []
        if patch.username is not None:
            updates.append("username = ?")
            values.append(patch.username)
        if patch.email is not None:
            updates.append("email = ?")
            values.append(patch.email.strip().lower())
        if patch.is_vip is not None:
            updates.append("is_vip = ?")
            values.append(int(patch.is_vip))
        if patch.is_admin is not None:
            updates.append("is_admin = ?")
            values.append(int(patch.is_admin))

        if not updates:
            return self.get_user(user_id)

        values.append(user_id)
        query = f"UPDATE users SET {', '.join(updates)} WHERE id = ?"
        try:
            cursor = self._conn.execute(query, values)
        except sqlite3.IntegrityError as exc:
            raise _conflict_from_integrity_error(exc) from exc
        if cursor.rowcount == 0:
            return None
        return self.get_user(user_id)

    # ------------------------------------------------------------------
    # VIP requests
    # ------------------------------------------------------------------
    def insert_vip_request(
        self,
        *,
        email: str,
        reason: Optional[str],
        user_id: Optional[int],
    ) -> VipRequest:
        created_at = current_timestamp()
        cursor = self._conn.execute(
            """
            INSERT INTO vip_requests (user_id, email, reason, status, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                user_id,
                email,
                reason,
                VipRequestStatus.PENDING.value,
                _serialize_datetime(created_at),
            ),
        )
        return VipRequest(
            id=int(cursor.lastrowid),
            user_id=user_id,
            email=email,
            reason=reason,
            status=VipRequestStatus.PENDING,
            created_at=created_at,
        )

    def get_vip_request(self, request_id: int) -> Optional[VipRequest]:
        row = self._conn.execute(
            "SELECT * FROM vip_requests WHERE id = ?",
            (request_id,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_vip_request(row)

    def list_vip_requests(self, status: VipRequestStatus) -> List[VipRequest]:
        rows = self._conn.execute(
            "SELECT * FROM vip_requests WHERE status = ? ORDER BY created_at, id",
            (status.value,),
        ).fetchall()
        return [self._row_to_vip_request(row) for row in rows]

    def transition_vip_request(
        self,
        request_id: int,
        *,
        expected: VipRequestStatus,
        status: VipRequestStatus,
    ) -> bool:
        cursor = self._conn.execute(
            "UPDATE vip_requests SET status = ?, decided_at = ? WHERE id = ? AND status = ?",
            (
                status.value,
                _serialize_datetime(current_timestamp()),
                request_id,
                expected.value,
            ),
        )
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            username=str(row["username"]),
            email=str(row["email"]),
            is_vip=bool(row["is_vip"]),
            is_admin=bool(row["is_admin"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_vip_request(self, row: sqlite3.Row) -> VipRequest:
        decided_at = row["decided_at"]
        return VipRequest(
            id=int(row["id"]),
            user_id=int(row["user_id"]) if row["user_id"] is not None else None,
            email=str(row["email"]),
            reason=row["reason"],
            status=VipRequestStatus(str(row["status"])),
            created_at=_parse_datetime(str(row["created_at"])),
            decided_at=_parse_datetime(str(decided_at)) if decided_at else None,
        )


class Database(Storage):
    """Simple wrapper around SQLite for persisting users and VIP requests.

    Every unit of work runs inside ``BEGIN IMMEDIATE`` so that only one writer
    holds the database at a time; status transitions are additionally guarded
    by a ``WHERE status = ?`` check.
    """

    def __init__(self, path: Path, *, timeout: float = 30.0) -> None:
        _ensure_directory(path)
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._path,
            timeout=self._timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        conn = self._connect()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    is_vip INTEGER NOT NULL DEFAULT 0,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS vip_requests (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    -- Not a foreign key: requests may name users that were never created or were removed.
                    user_id INTEGER,
                    email TEXT NOT NULL,
                    reason TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_vip_requests_status
                    ON vip_requests(status, created_at);
                """
            )

            columns = {
                row["name"]
                for row in conn.execute("PRAGMA table_info(vip_requests)").fetchall()
            }
            if "decided_at" not in columns:
                conn.execute("ALTER TABLE vip_requests ADD COLUMN decided_at TEXT")
        finally:
            conn.close()

    @contextmanager
    def atomic(self) -> Iterator[StorageUnit]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield _SQLiteUnit(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()


__all__ = ["Database", "resolve_database_path"]
