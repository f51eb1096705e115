"""Command-line interface for the MonsterMedia membership service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from typing import Sequence

from monstermedia.accounts import AccountService
from monstermedia.config import Settings, load_settings
from monstermedia.errors import MonsterMediaError
from monstermedia.security import PASSWORD_MIN_LENGTH
from monstermedia.service import bootstrap_admins, build_storage
from monstermedia.storage import Storage

logger = logging.getLogger("monstermedia.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MonsterMedia membership utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the membership database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP membership API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port for the HTTP API (default: 5000)",
    )

    user_parser = subparsers.add_parser("create-user", help="Create a member account")
    user_parser.add_argument("username", help="Unique username for login")
    user_parser.add_argument("email", help="Unique email address")
    user_parser.add_argument("--admin", action="store_true", help="Grant administrator access")
    user_parser.add_argument("--vip", action="store_true", help="Grant VIP access")

    subparsers.add_parser(
        "bootstrap-admins",
        help="Create the admin accounts listed in the YAML configuration file",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "create-user", "bootstrap-admins"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_storage(settings: Settings) -> Storage:
    storage = build_storage(settings)
    storage.initialize()
    if settings.storage_backend == "sqlite":
        logger.info("Database initialised at %s", settings.database_path)
    return storage


def _serve(*, settings: Settings, storage: Storage, host: str, port: int) -> None:
    from monstermedia.service import create_app
    import uvicorn

    logger.info("Starting membership API on http://%s:%s", host, port)
    app = create_app(storage=storage, settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {PASSWORD_MIN_LENGTH} characters): ")
        if len(password) < PASSWORD_MIN_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(
    accounts: AccountService,
    *,
    username: str,
    email: str,
    is_admin: bool,
    is_vip: bool,
) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return 1

    try:
        user = accounts.register(username, email, password, is_admin=is_admin, is_vip=is_vip)
    except MonsterMediaError as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 1

    roles = [name for name, enabled in (("admin", user.is_admin), ("vip", user.is_vip)) if enabled]
    print(f"Created user #{user.id}: {user.username} <{user.email}> {' '.join(roles)}".rstrip())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()
    storage = _initialise_storage(settings)

    if args.command == "serve":
        _serve(settings=settings, storage=storage, host=args.host, port=args.port)
    elif args.command == "create-user":
        accounts = AccountService(storage, bcrypt_rounds=settings.bcrypt_rounds)
        return _create_user(
            accounts,
            username=args.username,
            email=args.email,
            is_admin=args.admin,
            is_vip=args.vip,
        )
    elif args.command == "bootstrap-admins":
        if not settings.admins:
            print("No admin accounts are configured. Add an 'admins' list to MONSTERMEDIA_CONFIG.")
            return 1
        bootstrap_admins(AccountService(storage, bcrypt_rounds=settings.bcrypt_rounds), settings)
        print(f"Ensured {len(settings.admins)} admin account(s).")
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
