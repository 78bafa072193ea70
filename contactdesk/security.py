"""Access tokens and request authentication for the API."""
from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthError, ForbiddenError
from .models import User

if TYPE_CHECKING:  # pragma: no cover
    from .auth import AuthService

logger = logging.getLogger("contactdesk.security")

DEFAULT_TOKEN_TTL = 8 * 60 * 60


class TokenIssuer:
    """Issue and verify signed, expiring bearer tokens.

    Tokens are Fernet messages carrying only the user id. The role is never
    trusted from the token; callers re-read it from the store.
    """

    def __init__(self, secret: str, *, ttl_seconds: int = DEFAULT_TOKEN_TTL) -> None:
        if not secret:
            raise ValueError("A token secret must be provided")
        if ttl_seconds <= 0:
            raise ValueError("Token lifetime must be positive")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._cipher = Fernet(base64.urlsafe_b64encode(digest))
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, user: User) -> str:
        payload = json.dumps({"sub": user.id}, separators=(",", ":")).encode("utf-8")
        return self._cipher.encrypt(payload).decode("utf-8")

    def decode(self, token: str) -> Optional[int]:
        """Return the user id embedded in ``token`` or ``None`` if it is invalid or expired."""

        try:
            plaintext = self._cipher.decrypt(token.encode("utf-8"), ttl=self._ttl)
        except InvalidToken:
            return None
        try:
            payload = json.loads(plaintext.decode("utf-8"))
            return int(payload["sub"])
        except (ValueError, KeyError, TypeError):
            return None


class BearerPrincipal:
    """FastAPI dependency resolving the acting user from a bearer token."""

    def __init__(self, auth_service: "AuthService") -> None:
        self._auth = auth_service
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> User:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthError("Authentication required.")
        return self._auth.resolve_principal(credentials.credentials)


class AdminPrincipal(BearerPrincipal):
    """Like :class:`BearerPrincipal`, but only admits administrators."""

    async def __call__(self, request: Request) -> User:
        user = await super().__call__(request)
        if not user.is_admin:
            logger.warning("User %s attempted to reach %s without admin role", user.id, request.url.path)
            raise ForbiddenError()
        return user


__all__ = ["AdminPrincipal", "BearerPrincipal", "DEFAULT_TOKEN_TTL", "TokenIssuer"]
