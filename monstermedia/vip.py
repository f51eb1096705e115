"""The VIP request ledger: submission, admin review, and decisions."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from .entitlements import EntitlementPropagator
from .errors import Forbidden, InvalidState, NotFound, Unauthenticated, ValidationError
from .models import Identity, VipRequest, VipRequestStatus
from .notifications import NotificationDispatcher
from .security import require_admin
from .storage import Storage
from .validation import normalize_email, normalize_optional_text

logger = logging.getLogger("monstermedia.vip")

# Receives a notification callable and its arguments, e.g. ``BackgroundTasks.add_task``.
Scheduler = Callable[..., Any]


def _run_now(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


def parse_status(value: object, *, field: str = "status") -> VipRequestStatus:
    if isinstance(value, VipRequestStatus):
        return value
    try:
        return VipRequestStatus(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in VipRequestStatus)
        raise ValidationError(field, f"Invalid status; expected one of: {allowed}") from exc


def parse_decision(value: object) -> VipRequestStatus:
    decision = parse_status(value)
    if not decision.is_terminal:
        raise ValidationError("status", "Decision must be 'approved' or 'rejected'")
    return decision


class VipRequestLedger:
    """Owns the lifecycle of VIP requests.

    A request is created ``pending`` and moves exactly once to ``approved`` or
    ``rejected``. Approving a request that is linked to a user grants VIP in
    the same storage unit as the status change.

    Notifications go out after the unit commits. ``submit`` and ``decide``
    accept a ``schedule`` callable so the HTTP layer can defer delivery until
    the response has been sent; without one they are delivered inline.
    """

    def __init__(
        self,
        storage: Storage,
        *,
        entitlements: EntitlementPropagator | None = None,
        notifications: NotificationDispatcher | None = None,
    ) -> None:
        self._storage = storage
        self._entitlements = entitlements or EntitlementPropagator(storage)
        self._notifications = notifications or NotificationDispatcher()

    def submit(
        self,
        email: Optional[str],
        reason: Optional[str] = None,
        requesting_user_id: Optional[int] = None,
        *,
        caller: Optional[Identity] = None,
        schedule: Optional[Scheduler] = None,
    ) -> VipRequest:
        normalized_email = normalize_email(email)
        if requesting_user_id is not None:
            if caller is None:
                raise Unauthenticated()
            if caller.user_id != requesting_user_id:
                raise Forbidden("You cannot submit a VIP request on behalf of another user")

        with self._storage.atomic() as unit:
            request = unit.insert_vip_request(
                email=normalized_email,
                reason=normalize_optional_text(reason),
                user_id=requesting_user_id,
            )

        logger.info(
            "VIP request #%s submitted (user=%s)",
            request.id,
            request.user_id if request.user_id is not None else "guest",
        )
        (schedule or _run_now)(self._notifications.vip_request_received, request)
        return request

    def list_by_status(
        self,
        status: VipRequestStatus | str = VipRequestStatus.PENDING,
        *,
        caller: Optional[Identity],
    ) -> List[VipRequest]:
        require_admin(caller)
        with self._storage.atomic() as unit:
            return unit.list_vip_requests(parse_status(status))

    def get(self, request_id: int, *, caller: Optional[Identity]) -> VipRequest:
        require_admin(caller)
        request = self._storage.get_vip_request(request_id)
        if request is None:
            raise NotFound()
        return request

    def decide(
        self,
        request_id: int,
        decision: VipRequestStatus | str,
        *,
        caller: Optional[Identity],
        schedule: Optional[Scheduler] = None,
    ) -> VipRequest:
        admin = require_admin(caller)
        outcome = parse_decision(decision)

        with self._storage.atomic() as unit:
            request = unit.get_vip_request(request_id)
            if request is None:
                raise NotFound()
            if request.status is not VipRequestStatus.PENDING:
                raise InvalidState()
            if not unit.transition_vip_request(
                request_id,
                expected=VipRequestStatus.PENDING,
                status=outcome,
            ):
                raise InvalidState()
            if outcome is VipRequestStatus.APPROVED and request.user_id is not None:
                self._entitlements.grant_vip(request.user_id, unit=unit)
            decided = unit.get_vip_request(request_id)

        if decided is None:  # pragma: no cover - the row was written in the unit above
            raise NotFound()

        logger.info(
            "Admin %s %s VIP request #%s",
            admin.user_id,
            outcome.value,
            request_id,
        )
        (schedule or _run_now)(self._notifications.vip_request_decided, decided)
        return decided


__all__ = ["VipRequestLedger", "parse_decision", "parse_status"]
