"""Typed failures raised by the service layer.

Each class carries the HTTP status the API reports for it together with a
short, human readable default message. Only :mod:`contactdesk.api` turns these
into responses.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional


class ServiceError(Exception):
    """Base class for failures that are reported to API clients."""

    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Invalid request."


class AuthError(ServiceError):
    status_code = 401
    default_message = "Invalid credentials."


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Admin access required."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found."


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Conflict."


class InternalError(ServiceError):
    status_code = 500
    default_message = "Internal server error."


@contextmanager
def store_errors(logger: logging.Logger, action: str) -> Iterator[None]:
    """Log database failures in full and re-raise them as :class:`InternalError`."""

    try:
        yield
    except sqlite3.Error as exc:
        logger.exception("Database failure while %s", action)
        raise InternalError() from exc


__all__ = [
    "AuthError",
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "ServiceError",
    "ValidationError",
    "store_errors",
]
