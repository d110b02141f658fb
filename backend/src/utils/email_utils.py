"""Email address helpers."""

import re
from typing import Optional

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email address (emails are case-insensitive keys)."""
    return (email or "").strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and _EMAIL_RE.match(email or "") is not None


def email_local_part(email: Optional[str]) -> str:
    return normalize_email(email).split("@")[0]


def split_full_name(full_name: Optional[str]) -> tuple[str, str]:
    """Split "First Middle Last" into ("First", "Middle Last")."""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
