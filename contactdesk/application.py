"""Application factory wiring settings, storage and the HTTP API together."""
from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import FastAPI

from .api import create_app as create_api_app
from .config import Settings, load_settings
from .database import Database, resolve_database_path
from .security import TokenIssuer

logger = logging.getLogger("contactdesk.application")


def build_database(settings: Settings) -> Database:
    """Open the configured database, create its tables and seed the admin account."""

    database = Database(resolve_database_path(settings.database_path))
    database.initialize()
    database.ensure_admin(settings.admin_name, settings.admin_email, settings.admin_password)
    logger.info("Database initialised at %s", database.path)
    return database


def build_token_issuer(settings: Settings) -> TokenIssuer:
    secret = settings.token_secret
    if not secret:
        logger.warning(
            "No token secret configured; using a random secret. Set CONTACTDESK_TOKEN_SECRET so"
            " that issued tokens survive a restart."
        )
        secret = secrets.token_urlsafe(32)
    return TokenIssuer(secret, ttl_seconds=settings.token_ttl_seconds)


def create_application(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
) -> FastAPI:
    """Create the complete ASGI application from ``settings``."""

    settings = settings or load_settings()
    database = database or build_database(settings)

    app = create_api_app(database=database, tokens=build_token_issuer(settings))
    app.state.settings = settings
    return app


__all__ = ["build_database", "build_token_issuer", "create_application"]
