"""SQLite-backed persistence for user accounts and contact messages."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from passlib.context import CryptContext

from .errors import ConflictError
from .models import ContactMessage, Role, User

logger = logging.getLogger("contactdesk.database")

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "contactdesk.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


class Database:
    """Simple wrapper around SQLite for persisting users and contact messages."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS contacts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    service_interest TEXT,
                    message TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_contacts_created_at ON contacts(created_at);
                """
            )

    def ensure_admin(self, full_name: str, email: str, password: str) -> Optional[User]:
        """Seed an administrator account unless one with ``email`` already exists.

        Returns the created user, or ``None`` when the account was already
        present. Safe to call on every start-up.
        """

        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE email = ? LIMIT 1", (email,)).fetchone()
        if row is not None:
            return None

        try:
            user = self.create_user(full_name, email, password, role=Role.ADMIN)
        except ConflictError:
            # Another process seeded the account first.
            return None
        logger.info("Default admin user created: %s", email)
        return user

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(
        self,
        full_name: str,
        email: str,
        password: str,
        *,
        role: Role = Role.USER,
    ) -> User:
        """Insert a user and return it. Raises :class:`ConflictError` on duplicate email."""

        if not password:
            raise ValueError("Password must not be empty")

        created_at = _current_timestamp()
        password_hash = _hash_password(password)

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (full_name, email, password, role, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (full_name, email, password_hash, role.value, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Email already registered.") from exc
            user_id = cursor.lastrowid

        return User(id=user_id, full_name=full_name, email=email, role=role, created_at=created_at)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Return the user when ``password`` matches, otherwise ``None``.

        Unknown emails and wrong passwords are indistinguishable to the caller.
        """

        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            # Spend the same hashing effort as a real comparison.
            _pwd_context.dummy_verify()
            return None
        if not _verify_password(password, str(row["password"])):
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users_with_email(self, email: str) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users WHERE email = ?", (email,)).fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Contact messages
    # ------------------------------------------------------------------
    def create_contact(
        self,
        *,
        full_name: str,
        email: str,
        service_interest: Optional[str],
        message: str,
    ) -> ContactMessage:
        created_at = _current_timestamp()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO contacts (full_name, email, service_interest, message, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (full_name, email, service_interest, message, _serialize_datetime(created_at)),
            )
            contact_id = cursor.lastrowid

        return ContactMessage(
            id=contact_id,
            full_name=full_name,
            email=email,
            service_interest=service_interest,
            message=message,
            created_at=created_at,
        )

    def list_contacts(self) -> List[ContactMessage]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM contacts ORDER BY created_at ASC, id ASC").fetchall()
        return [self._row_to_contact(row) for row in rows]

    def get_contact(self, contact_id: int) -> Optional[ContactMessage]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_contact(row)

    def rename_contact(self, contact_id: int, full_name: str) -> Optional[ContactMessage]:
        """Overwrite ``full_name`` and return the updated row, or ``None`` if it is gone."""

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE contacts SET full_name = ? WHERE id = ?",
                (full_name, contact_id),
            )
            if cursor.rowcount == 0:
                return None

        return self.get_contact(contact_id)

    def delete_contact(self, contact_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            full_name=str(row["full_name"]),
            email=str(row["email"]),
            role=Role(str(row["role"])),
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_contact(self, row: sqlite3.Row) -> ContactMessage:
        return ContactMessage(
            id=int(row["id"]),
            full_name=str(row["full_name"]),
            email=str(row["email"]),
            service_interest=row["service_interest"],
            message=str(row["message"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
