"""Domain models for user accounts and contact messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Closed set of account roles accepted by the store."""

    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class User:
    """Represents a user account. The password hash never leaves the store."""

    id: int
    full_name: str
    email: str
    role: Role
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class ContactMessage:
    """A message submitted through the public contact form."""

    id: int
    full_name: str
    email: str
    service_interest: Optional[str]
    message: str
    created_at: datetime


__all__ = ["ContactMessage", "Role", "User"]
