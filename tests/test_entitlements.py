from __future__ import annotations

import pytest

from monstermedia.entitlements import EntitlementPropagator
from monstermedia.errors import NotFound
from monstermedia.storage import Storage


def test_grant_vip_is_idempotent(storage: Storage) -> None:
    with storage.atomic() as unit:
        user = unit.insert_user(username="teto", email="teto@example.com", password_hash="x")

    propagator = EntitlementPropagator(storage)

    first = propagator.grant_vip(user.id)
    second = propagator.grant_vip(user.id)

    assert first.is_vip is True
    assert second.is_vip is True
    assert second == first


def test_grant_vip_for_missing_user_is_not_found(storage: Storage) -> None:
    propagator = EntitlementPropagator(storage)

    with pytest.raises(NotFound):
        propagator.grant_vip(404)


def test_grant_vip_joins_callers_unit(storage: Storage) -> None:
    with storage.atomic() as unit:
        user = unit.insert_user(username="rin", email="rin@example.com", password_hash="x")

    propagator = EntitlementPropagator(storage)

    with pytest.raises(RuntimeError):
        with storage.atomic() as unit:
            granted = propagator.grant_vip(user.id, unit=unit)
            assert granted.is_vip is True
            raise RuntimeError("abort the outer unit")

    refreshed = storage.get_user(user.id)
    assert refreshed is not None
    assert refreshed.is_vip is False


def test_grant_vip_leaves_admin_flag_alone(storage: Storage) -> None:
    with storage.atomic() as unit:
        user = unit.insert_user(
            username="admin",
            email="admin@example.com",
            password_hash="x",
            is_admin=True,
        )

    granted = EntitlementPropagator(storage).grant_vip(user.id)

    assert granted.is_vip is True
    assert granted.is_admin is True
