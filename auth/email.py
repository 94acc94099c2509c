"""Email address normalization for login lookups."""

import re

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Cheap shape check run before any store or email work.

    Rejects header-injection characters and anything outside 3-254 chars.
    Not a full RFC 5322 validator.
    """
    if len(email) < 3 or len(email) > 254:
        return False
    if "\r" in email or "\n" in email:
        return False
    return _EMAIL_RE.match(email) is not None
