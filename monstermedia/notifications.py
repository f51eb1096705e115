"""Fire-and-forget notifications about VIP request activity."""

from __future__ import annotations

import logging
from typing import Dict, Protocol

import httpx

from .models import VipRequest

logger = logging.getLogger("monstermedia.notifications")


class NotificationError(RuntimeError):
    """Raised when a notification could not be delivered."""


class Notifier(Protocol):
    def vip_request_received(self, request: VipRequest) -> None: ...

    def vip_request_decided(self, request: VipRequest) -> None: ...


def _event_payload(event: str, request: VipRequest) -> Dict[str, object]:
    return {
        "event": event,
        "request": {
            "id": request.id,
            "user_id": request.user_id,
            "email": request.email,
            "reason": request.reason,
            "status": request.status.value,
            "created_at": request.created_at.isoformat(),
            "decided_at": request.decided_at.isoformat() if request.decided_at else None,
        },
    }


class LoggingNotifier:
    """Default notifier that records events in the service log."""

    def vip_request_received(self, request: VipRequest) -> None:
        logger.info("New VIP request #%s from %s", request.id, request.email)

    def vip_request_decided(self, request: VipRequest) -> None:
        logger.info(
            "VIP request #%s for %s was %s",
            request.id,
            request.email,
            request.status.value,
        )


class WebhookNotifier:
    """POST a JSON event to an external dispatcher (mailer, chat hook, ...)."""

    def __init__(self, url: str, *, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        cleaned = (url or "").strip()
        if not cleaned:
            raise ValueError("Webhook URL must not be empty")
        self._url = cleaned
        self._timeout = timeout
        self._client = client

    def vip_request_received(self, request: VipRequest) -> None:
        self._post(_event_payload("vip_request.received", request))

    def vip_request_decided(self, request: VipRequest) -> None:
        self._post(_event_payload("vip_request.decided", request))

    def _post(self, payload: Dict[str, object]) -> None:
        try:
            if self._client is not None:
                response = self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                response = httpx.post(self._url, json=payload, timeout=self._timeout)
        except httpx.RequestError as exc:
            raise NotificationError(f"Failed to contact notification webhook: {exc}") from exc

        if response.status_code >= 400:
            raise NotificationError(
                f"Notification webhook responded with status {response.status_code}"
            )


class NotificationDispatcher:
    """Wrap a notifier so that delivery failures never reach the caller."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier: Notifier = notifier or LoggingNotifier()

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def vip_request_received(self, request: VipRequest) -> None:
        try:
            self._notifier.vip_request_received(request)
        except Exception:
            logger.exception("Failed to send notification for new VIP request #%s", request.id)

    def vip_request_decided(self, request: VipRequest) -> None:
        try:
            self._notifier.vip_request_decided(request)
        except Exception:
            logger.exception("Failed to send decision notification for VIP request #%s", request.id)


__all__ = [
    "LoggingNotifier",
    "NotificationDispatcher",
    "NotificationError",
    "Notifier",
    "WebhookNotifier",
]
