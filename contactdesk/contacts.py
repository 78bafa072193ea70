"""Contact message lifecycle: public submission plus admin-only management."""
from __future__ import annotations

import logging
from typing import List, Optional, Union

from .database import Database
from .errors import ForbiddenError, NotFoundError, ValidationError, store_errors
from .models import ContactMessage, User
from .validation import all_present, is_present, is_valid_email

logger = logging.getLogger("contactdesk.contacts")

ContactId = Union[int, str]

# SQLite rowids are signed 64-bit integers.
_MIN_ROW_ID = -(2**63)
_MAX_ROW_ID = 2**63 - 1


def _parse_contact_id(contact_id: ContactId) -> int:
    if isinstance(contact_id, bool):
        raise NotFoundError("Contact message not found.")
    try:
        numeric_id = int(contact_id)
    except (TypeError, ValueError):
        raise NotFoundError("Contact message not found.") from None
    if not _MIN_ROW_ID <= numeric_id <= _MAX_ROW_ID:
        raise NotFoundError("Contact message not found.")
    return numeric_id


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        logger.warning("User %s denied access to contact management", actor.id)
        raise ForbiddenError()


class ContactService:
    """Create, read, rename and delete contact messages.

    ``submit`` is public. Every other operation takes the acting principal and
    refuses anyone whose role is not ``admin``.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def submit(
        self,
        full_name: Optional[str],
        email: Optional[str],
        message: Optional[str],
        service_interest: Optional[str] = None,
    ) -> ContactMessage:
        if not all_present(full_name, email, message):
            raise ValidationError("Full Name, Email, and Message are required.")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format.")

        with store_errors(logger, "saving a contact message"):
            contact = self._database.create_contact(
                full_name=full_name,
                email=email,
                service_interest=service_interest,
                message=message,
            )
        logger.info("Stored contact message %s from %s", contact.id, contact.email)
        return contact

    def list_all(self, actor: User) -> List[ContactMessage]:
        _require_admin(actor)
        with store_errors(logger, "listing contact messages"):
            return self._database.list_contacts()

    def get_one(self, actor: User, contact_id: ContactId) -> ContactMessage:
        _require_admin(actor)
        numeric_id = _parse_contact_id(contact_id)
        with store_errors(logger, "fetching a contact message"):
            contact = self._database.get_contact(numeric_id)
        if contact is None:
            raise NotFoundError("Contact message not found.")
        return contact

    def rename(self, actor: User, contact_id: ContactId, full_name: Optional[str]) -> ContactMessage:
        _require_admin(actor)
        if not is_present(full_name):
            raise ValidationError("Full Name is required for update.")
        numeric_id = _parse_contact_id(contact_id)

        with store_errors(logger, "renaming a contact message"):
            contact = self._database.rename_contact(numeric_id, full_name)
        if contact is None:
            raise NotFoundError("Contact message not found.")

        logger.info("User %s renamed contact message %s", actor.id, contact.id)
        return contact

    def delete(self, actor: User, contact_id: ContactId) -> int:
        _require_admin(actor)
        numeric_id = _parse_contact_id(contact_id)

        with store_errors(logger, "deleting a contact message"):
            deleted = self._database.delete_contact(numeric_id)
        if not deleted:
            raise NotFoundError("Contact message not found.")

        logger.info("User %s deleted contact message %s", actor.id, numeric_id)
        return numeric_id


__all__ = ["ContactService"]
