"""Turning an approved VIP request into VIP privileges on the user record."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import NotFound
from .models import User, UserPatch
from .storage import Storage, StorageUnit

logger = logging.getLogger("monstermedia.entitlements")


class EntitlementPropagator:
    """The only code path that grants VIP status as a result of a request."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def grant_vip(self, user_id: int, *, unit: Optional[StorageUnit] = None) -> User:
        """Set ``is_vip`` on ``user_id``; granting to an existing VIP is a no-op.

        When ``unit`` is given the write joins that atomic unit, otherwise a new
        unit is opened.
        """
        if unit is None:
            with self._storage.atomic() as own_unit:
                return self._grant(own_unit, user_id)
        return self._grant(unit, user_id)

    def _grant(self, unit: StorageUnit, user_id: int) -> User:
        user = unit.get_user(user_id)
        if user is None:
            logger.error("Refusing to grant VIP to missing user %s", user_id)
            raise NotFound()
        if user.is_vip:
            return user

        updated = unit.update_user(user_id, UserPatch(is_vip=True))
        if updated is None:
            raise NotFound()
        logger.info("Granted VIP access to user %s", user_id)
        return updated


__all__ = ["EntitlementPropagator"]
