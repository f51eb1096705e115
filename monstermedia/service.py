"""Application factory wiring storage, sessions, and the VIP workflow together."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI

from .accounts import AccountService
from .api import register_api_routes, register_error_handlers
from .config import Settings, load_settings
from .database import Database
from .entitlements import EntitlementPropagator
from .notifications import LoggingNotifier, NotificationDispatcher, Notifier, WebhookNotifier
from .sessions import SessionAuthenticator, SessionManager
from .storage import InMemoryStorage, Storage
from .vip import VipRequestLedger

logger = logging.getLogger("monstermedia.service")


def build_storage(settings: Settings) -> Storage:
    """Instantiate the storage backend named in ``settings``."""

    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; all data is lost when the process exits.")
        return InMemoryStorage()
    return Database(settings.database_path)


def build_notifier(settings: Settings) -> Notifier:
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url)
    return LoggingNotifier()


def bootstrap_admins(accounts: AccountService, settings: Settings) -> None:
    for account in settings.admins:
        user = accounts.ensure_admin(account.username, account.email, account.password)
        logger.info("Admin account %s is ready (user %s)", account.email, user.id)


def create_app(
    *,
    storage: Storage | None = None,
    settings: Settings | None = None,
    session_manager: SessionManager | None = None,
    notifier: Notifier | None = None,
    secure_cookies: bool | None = None,
    bcrypt_rounds: int | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the membership service."""

    app_settings = settings or load_settings()
    app_storage = storage or build_storage(app_settings)
    app_storage.initialize()

    sessions = session_manager
    if sessions is None:
        sessions = SessionManager(ttl=timedelta(hours=app_settings.session_ttl_hours))
    use_secure_cookies = app_settings.secure_cookies if secure_cookies is None else secure_cookies
    if not use_secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    accounts = AccountService(
        app_storage,
        bcrypt_rounds=bcrypt_rounds or app_settings.bcrypt_rounds,
    )
    dispatcher = NotificationDispatcher(notifier or build_notifier(app_settings))
    ledger = VipRequestLedger(
        app_storage,
        entitlements=EntitlementPropagator(app_storage),
        notifications=dispatcher,
    )
    authenticator = SessionAuthenticator(sessions, app_storage)

    bootstrap_admins(accounts, app_settings)

    app = FastAPI(
        title="MonsterMedia Membership API",
        version="1.0.0",
        description="Accounts, sessions, and VIP access requests for MonsterMedia.",
    )
    app.state.storage = app_storage
    app.state.settings = app_settings
    app.state.session_manager = sessions
    app.state.accounts = accounts
    app.state.ledger = ledger

    register_error_handlers(app)
    register_api_routes(
        app,
        accounts=accounts,
        ledger=ledger,
        sessions=sessions,
        authenticator=authenticator,
        secure_cookies=use_secure_cookies,
    )

    return app


__all__ = ["bootstrap_admins", "build_notifier", "build_storage", "create_app"]
