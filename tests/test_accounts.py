from __future__ import annotations

import pytest

from monstermedia.accounts import AccountService
from monstermedia.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationError
from monstermedia.models import Identity, UserPatch
from monstermedia.storage import Storage

PASSWORD = "monster-password"


def test_register_creates_plain_member(accounts: AccountService, storage: Storage) -> None:
    user = accounts.register("  miku  ", "Miku@Example.com", PASSWORD)

    assert user.username == "miku"
    assert user.email == "miku@example.com"
    assert user.is_vip is False
    assert user.is_admin is False

    with storage.atomic() as unit:
        stored_hash = unit.get_password_hash(user.id)
    assert stored_hash is not None
    assert PASSWORD not in stored_hash


def test_register_validates_input(accounts: AccountService) -> None:
    with pytest.raises(ValidationError) as bad_email:
        accounts.register("miku", "miku-at-example", PASSWORD)
    assert bad_email.value.field == "email"

    with pytest.raises(ValidationError) as bad_name:
        accounts.register("   ", "miku@example.com", PASSWORD)
    assert bad_name.value.field == "username"

    with pytest.raises(ValidationError) as bad_password:
        accounts.register("miku", "miku@example.com", "short")
    assert bad_password.value.field == "password"


def test_register_rejects_duplicates(accounts: AccountService) -> None:
    accounts.register("miku", "miku@example.com", PASSWORD)

    with pytest.raises(Conflict):
        accounts.register("miku", "other@example.com", PASSWORD)
    with pytest.raises(Conflict):
        accounts.register("other", "MIKU@example.com", PASSWORD)


def test_authenticate_by_username_or_email(accounts: AccountService) -> None:
    user = accounts.register("miku", "miku@example.com", PASSWORD)

    assert accounts.authenticate("miku", PASSWORD) == user
    assert accounts.authenticate("MIKU@example.com", PASSWORD) == user
    assert accounts.authenticate("miku", "wrong-password") is None
    assert accounts.authenticate("nobody", PASSWORD) is None
    assert accounts.authenticate("", PASSWORD) is None


def test_profile_requires_session(accounts: AccountService) -> None:
    user = accounts.register("miku", "miku@example.com", PASSWORD)

    assert accounts.get_profile(caller=Identity.from_user(user)) == user
    with pytest.raises(Unauthenticated):
        accounts.get_profile(caller=None)


def test_admin_can_list_and_patch_users(accounts: AccountService) -> None:
    admin = accounts.register("boss", "boss@example.com", PASSWORD, is_admin=True)
    member = accounts.register("miku", "miku@example.com", PASSWORD)
    caller = Identity.from_user(admin)

    assert [user.id for user in accounts.list_users(caller=caller)] == [admin.id, member.id]

    promoted = accounts.update_user(member.id, UserPatch(is_vip=True), caller=caller)
    assert promoted.is_vip is True
    assert promoted.is_admin is False
    assert promoted.username == "miku"

    revoked = accounts.update_user(member.id, UserPatch(is_vip=False), caller=caller)
    assert revoked.is_vip is False

    with pytest.raises(NotFound):
        accounts.update_user(999, UserPatch(is_vip=True), caller=caller)
    with pytest.raises(ValidationError):
        accounts.update_user(member.id, UserPatch(email="broken"), caller=caller)
    with pytest.raises(Conflict):
        accounts.update_user(member.id, UserPatch(username="boss"), caller=caller)


def test_members_cannot_administer(accounts: AccountService) -> None:
    member = accounts.register("miku", "miku@example.com", PASSWORD)
    caller = Identity.from_user(member)

    with pytest.raises(Forbidden):
        accounts.list_users(caller=caller)
    with pytest.raises(Forbidden):
        accounts.update_user(member.id, UserPatch(is_vip=True), caller=caller)


def test_ensure_admin_is_idempotent_and_promotes(accounts: AccountService) -> None:
    created = accounts.ensure_admin("boss", "boss@example.com", PASSWORD)
    assert created.is_admin and created.is_vip

    again = accounts.ensure_admin("boss", "BOSS@example.com", PASSWORD)
    assert again.id == created.id

    member = accounts.register("miku", "miku@example.com", PASSWORD)
    promoted = accounts.ensure_admin("miku", "miku@example.com", PASSWORD)
    assert promoted.id == member.id
    assert promoted.is_admin and promoted.is_vip
