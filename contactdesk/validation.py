"""Input checks shared by the auth and contact services."""

from __future__ import annotations

import re
from typing import Optional

_EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def is_valid_email(email: Optional[str]) -> bool:
    """Return ``True`` when ``email`` looks like ``local@domain.tld``.

    This is a shape check only: no whitespace, exactly one ``@`` and at least
    one ``.`` in the part after it.
    """

    if not email:
        return False
    return _EMAIL_PATTERN.fullmatch(email) is not None


def is_present(value: Optional[str]) -> bool:
    return value is not None and bool(value.strip())


def all_present(*values: Optional[str]) -> bool:
    return all(is_present(value) for value in values)


__all__ = ["all_present", "is_present", "is_valid_email"]
