from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from monstermedia.database import Database
from monstermedia.errors import Conflict
from monstermedia.models import UserPatch, VipRequestStatus
from monstermedia.storage import Storage


def _add_user(storage: Storage, username: str, email: str):
    with storage.atomic() as unit:
        return unit.insert_user(username=username, email=email, password_hash="hash")


def test_insert_and_lookup_user(storage: Storage) -> None:
    user = _add_user(storage, "rin", "Rin@Example.com")

    assert user.email == "rin@example.com"
    assert user.is_vip is False
    assert user.is_admin is False

    with storage.atomic() as unit:
        assert unit.get_user_by_username("rin") == user
        assert unit.get_user_by_email(" RIN@example.com ") == user
        assert unit.get_password_hash(user.id) == "hash"
        assert unit.get_user(user.id + 100) is None


def test_duplicate_username_and_email_conflict(storage: Storage) -> None:
    _add_user(storage, "rin", "rin@example.com")

    with pytest.raises(Conflict, match="Username"):
        _add_user(storage, "rin", "other@example.com")
    with pytest.raises(Conflict, match="Email"):
        _add_user(storage, "len", "rin@example.com")


def test_update_user_applies_only_present_fields(storage: Storage) -> None:
    user = _add_user(storage, "kaito", "kaito@example.com")

    with storage.atomic() as unit:
        updated = unit.update_user(user.id, UserPatch(is_vip=True))

    assert updated is not None
    assert updated.is_vip is True
    assert updated.is_admin is False
    assert updated.username == "kaito"

    with storage.atomic() as unit:
        assert unit.update_user(user.id + 100, UserPatch(is_admin=True)) is None


def test_update_user_rejects_taken_email(storage: Storage) -> None:
    _add_user(storage, "miku", "miku@example.com")
    other = _add_user(storage, "luka", "luka@example.com")

    with pytest.raises(Conflict):
        with storage.atomic() as unit:
            unit.update_user(other.id, UserPatch(email="miku@example.com"))


def test_vip_requests_listed_oldest_first(storage: Storage) -> None:
    with storage.atomic() as unit:
        first = unit.insert_vip_request(email="a@example.com", reason=None, user_id=None)
        second = unit.insert_vip_request(email="b@example.com", reason="pls", user_id=None)
        third = unit.insert_vip_request(email="c@example.com", reason=None, user_id=None)
        assert unit.transition_vip_request(
            second.id,
            expected=VipRequestStatus.PENDING,
            status=VipRequestStatus.REJECTED,
        )

    with storage.atomic() as unit:
        pending = unit.list_vip_requests(VipRequestStatus.PENDING)
        rejected = unit.list_vip_requests(VipRequestStatus.REJECTED)

    assert [item.id for item in pending] == [first.id, third.id]
    assert [item.id for item in rejected] == [second.id]
    assert rejected[0].decided_at is not None
    assert rejected[0].reason == "pls"


def test_transition_is_compare_and_set(storage: Storage) -> None:
    with storage.atomic() as unit:
        request = unit.insert_vip_request(email="a@example.com", reason=None, user_id=None)

    with storage.atomic() as unit:
        assert unit.transition_vip_request(
            request.id,
            expected=VipRequestStatus.PENDING,
            status=VipRequestStatus.APPROVED,
        )
        assert not unit.transition_vip_request(
            request.id,
            expected=VipRequestStatus.PENDING,
            status=VipRequestStatus.REJECTED,
        )
        assert not unit.transition_vip_request(
            request.id + 100,
            expected=VipRequestStatus.PENDING,
            status=VipRequestStatus.REJECTED,
        )

    stored = storage.get_vip_request(request.id)
    assert stored is not None
    assert stored.status is VipRequestStatus.APPROVED


def test_failed_unit_leaves_no_trace(storage: Storage) -> None:
    user = _add_user(storage, "gumi", "gumi@example.com")

    with pytest.raises(RuntimeError):
        with storage.atomic() as unit:
            unit.update_user(user.id, UserPatch(is_vip=True))
            unit.insert_vip_request(email="gumi@example.com", reason=None, user_id=user.id)
            raise RuntimeError("write failed")

    refreshed = storage.get_user(user.id)
    assert refreshed is not None
    assert refreshed.is_vip is False
    with storage.atomic() as unit:
        assert unit.list_vip_requests(VipRequestStatus.PENDING) == []


def test_initialize_adds_decided_at_to_existing_table(tmp_path: Path) -> None:
    db_path = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(db_path)
    conn.executescript(
        """
        CREATE TABLE vip_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            email TEXT NOT NULL,
            reason TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TEXT NOT NULL
        );
        INSERT INTO vip_requests (email, status, created_at)
        VALUES ('old@example.com', 'pending', '2024-01-01T00:00:00+00:00');
        """
    )
    conn.close()

    database = Database(db_path)
    database.initialize()

    request = database.get_vip_request(1)
    assert request is not None
    assert request.email == "old@example.com"
    assert request.decided_at is None
