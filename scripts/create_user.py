import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from monstermedia.accounts import AccountService
from monstermedia.config import load_settings
from monstermedia.database import Database, resolve_database_path
from monstermedia.errors import MonsterMediaError
from monstermedia.security import PASSWORD_MIN_LENGTH


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a MonsterMedia member account")
    parser.add_argument("username", help="Unique username for login")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("--admin", action="store_true", help="Create an administrator (also VIP)")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to MONSTERMEDIA_DB_PATH or data/monstermedia.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < PASSWORD_MIN_LENGTH:
            print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    settings = load_settings()
    db_path = resolve_database_path(args.db_path) if args.db_path else settings.database_path

    database = Database(db_path)
    database.initialize()
    accounts = AccountService(database, bcrypt_rounds=settings.bcrypt_rounds)

    try:
        if args.admin:
            user = accounts.ensure_admin(args.username, args.email, password)
        else:
            user = accounts.register(args.username, args.email, password)
    except MonsterMediaError as exc:  # duplicates, malformed input, etc.
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.username} <{user.email}>")
    if user.is_admin:
        print("The account has administrator and VIP access.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
