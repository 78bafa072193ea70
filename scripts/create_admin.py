import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contactdesk.config import load_settings
from contactdesk.database import Database, resolve_database_path
from contactdesk.errors import ConflictError
from contactdesk.models import Role
from contactdesk.validation import is_valid_email


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a contactdesk administrator account")
    parser.add_argument("full_name", help="Display name for the administrator")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to CONTACTDESK_DB_PATH or data/contactdesk.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    email = args.email.strip()
    if not is_valid_email(email):
        print(f"Error: {email!r} is not a valid email address.", file=sys.stderr)
        return 1

    password = prompt_for_password()

    db_path = resolve_database_path(args.db_path or load_settings().database_path)
    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(args.full_name.strip(), email, password, role=Role.ADMIN)
    except ConflictError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created administrator #{user.id}: {user.full_name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
