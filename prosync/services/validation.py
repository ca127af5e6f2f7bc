"""Field validation shared by sign-up style forms."""

from __future__ import annotations

import re
from datetime import datetime

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8


def _validate_email(data: str) -> str | None:
    if not EMAIL_RE.match(data):
        return "Invalid email format"
    return None


def _validate_password(data: str) -> str | None:
    if len(data) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if not re.search(r"[A-Z]", data):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", data):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"\d", data):
        return "Password must contain at least one number"
    if not re.search(r"[^A-Za-z0-9]", data):
        return "Password must contain at least one special character"
    return None


def _validate_date(data: str) -> str | None:
    try:
        datetime.fromisoformat(data.strip().replace("Z", "+00:00"))
    except ValueError:
        return "Invalid date format"
    return None


VALIDATORS = {
    "email": _validate_email,
    "password": _validate_password,
    "date": _validate_date,
}


def validate_value(kind: str, data: str) -> tuple[bool, str | None]:
    """Return ``(valid, error)`` for *data* checked as *kind*."""
    validator = VALIDATORS.get(kind)
    if validator is None:
        return False, f"Unknown validation type: {kind}"
    if not isinstance(data, str):
        return False, "Value must be a string"
    error = validator(data)
    return error is None, error
