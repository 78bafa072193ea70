"""Registration, login and principal resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .database import Database
from .errors import AuthError, ConflictError, ValidationError, store_errors
from .models import User
from .security import TokenIssuer
from .validation import all_present, is_valid_email

logger = logging.getLogger("contactdesk.auth")


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login call."""

    user: User
    token: str


class AuthService:
    """Stateless account operations backed by :class:`Database`."""

    def __init__(self, database: Database, tokens: TokenIssuer) -> None:
        self._database = database
        self._tokens = tokens

    def register(
        self,
        full_name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResult:
        if not all_present(full_name, email, password):
            raise ValidationError("All fields are required.")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format.")

        try:
            with store_errors(logger, "registering a user"):
                user = self._database.create_user(full_name, email, password)
        except ConflictError:
            logger.info("Registration rejected for existing email %s", email)
            raise

        logger.info("Registered user %s <%s>", user.id, user.email)
        return AuthResult(user=user, token=self._tokens.issue(user))

    def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        if not email or not password:
            raise ValidationError("Email and password are required.")

        with store_errors(logger, "authenticating a user"):
            user = self._database.authenticate_user(email, password)
        if user is None:
            logger.warning("Failed login attempt for %s", email)
            raise AuthError("Invalid credentials.")

        return AuthResult(user=user, token=self._tokens.issue(user))

    def resolve_principal(self, token: str) -> User:
        """Return the stored user a bearer token was issued for."""

        user_id = self._tokens.decode(token)
        if user_id is None:
            raise AuthError("Invalid or expired token.")

        with store_errors(logger, "resolving a token"):
            user = self._database.get_user(user_id)
        if user is None:
            raise AuthError("Invalid or expired token.")
        return user


__all__ = ["AuthResult", "AuthService"]
