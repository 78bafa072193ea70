"""Command-line interface for the contactdesk service."""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

import httpx

from contactdesk.application import build_database, create_application
from contactdesk.config import Settings, load_settings
from contactdesk.database import Database
from contactdesk.errors import ConflictError
from contactdesk.models import Role
from contactdesk.validation import is_valid_email

logger = logging.getLogger("contactdesk.main")

_DEFAULT_SERVICE_URL = "http://localhost:3000"
PASSWORD_MIN_LENGTH = 8


def _parse_args(argv: Sequence[str] | None, settings: Settings | None = None) -> argparse.Namespace:
    settings = settings or Settings()
    parser = argparse.ArgumentParser(description="contactdesk management utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the tables and seed the admin account")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=settings.host, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port for the HTTP API (default: {settings.port})",
    )

    admin_parser = subparsers.add_parser(
        "admin", help="Launch the interactive administration console"
    )
    admin_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

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


def _project_root() -> Path:
    return Path(__file__).resolve().parent


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    import uvicorn

    logger.info("Starting contactdesk on http://%s:%s", host, port)
    app = create_application(settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def _run_admin_cli(database: Database, *, default_service_url: str | None = None) -> None:
    """Provide an interactive management console for administrators."""

    service_url = default_service_url or _DEFAULT_SERVICE_URL

    print("contactdesk Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List all users")
            print("  2) Add a new administrator")
            print("  3) Show contact inbox")
            print("  4) Run automated tests")
            print("  5) Exit")

            choice = input("Enter choice [1-5]: ").strip()

            if choice == "1":
                _list_users(database)
            elif choice == "2":
                _add_admin(database)
            elif choice == "3":
                _show_inbox(service_url)
            elif choice == "4":
                _run_tests()
            elif choice == "5":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Role':<6}  Created")
    print("-" * 90)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:>4}  {user.full_name:<24}  {user.email:<32}  {user.role.value:<6}  {created}")


def _add_admin(database: Database) -> None:
    print("\nCreate a new administrator (leave the name blank to cancel).")
    name = input("Full name: ").strip()
    if not name:
        print("Administrator creation cancelled.")
        return

    email = input("Email address: ").strip()
    if not is_valid_email(email):
        print("That does not look like a valid email address.")
        return

    password = _prompt_for_password()
    if password is None:
        print("Aborted creating administrator.")
        return

    try:
        user = database.create_user(name, email, password, role=Role.ADMIN)
    except ConflictError as exc:
        print(f"Failed to create administrator: {exc}")
        return

    print(f"Created administrator #{user.id}: {user.full_name} <{user.email}>")


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


def _show_inbox(base_url: str) -> None:
    email = os.getenv("CONTACTDESK_CLI_EMAIL")
    password = os.getenv("CONTACTDESK_CLI_PASSWORD")
    if not email or not password:
        print(
            "No administrator credentials available. Set CONTACTDESK_CLI_EMAIL and "
            "CONTACTDESK_CLI_PASSWORD before running this command."
        )
        return

    root = base_url.rstrip("/")

    try:
        login = httpx.post(f"{root}/api/login", json={"email": email, "password": password}, timeout=10.0)
        if login.status_code != 200:
            print(f"Login failed ({login.status_code}): {_message_from(login)}")
            return
        token = login.json()["token"]
        response = httpx.get(
            f"{root}/api/admin/contacts",
            headers={"Authorization": f"Bearer {token}"},
            timeout=10.0,
        )
    except httpx.HTTPError as exc:
        print(f"Failed to contact service: {exc}")
        return

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {_message_from(response)}")
        return

    contacts = response.json()
    if not contacts:
        print("The contact inbox is empty.")
        return

    print(f"{len(contacts)} message(s) in the inbox:")
    for contact in contacts:
        interest = contact.get("service_interest") or "-"
        print(f"- #{contact['id']} {contact['full_name']} <{contact['email']}> [{interest}] {contact['created_at']}")
        print(f"    {contact['message']}")


def _message_from(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message", "")).strip() or response.text.strip()
    except ValueError:
        return response.text.strip()


def _run_tests() -> None:
    print("Running test suite using pytest...\n")
    result = subprocess.run([sys.executable, "-m", "pytest"], cwd=_project_root(), check=False)
    if result.returncode == 0:
        print("All tests completed successfully.")
    else:
        print(f"Tests exited with status code {result.returncode}.")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    args = _parse_args(argv, settings)
    database = build_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "admin":
        _run_admin_cli(database, default_service_url=args.service_url)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
