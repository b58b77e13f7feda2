"""Input normalization and shape checks for credentials."""
from __future__ import annotations

import re

from portal.errors import ValidationError

USERNAME_RE = re.compile(r"^[a-z0-9_]{3,24}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LEN = 8


def normalize_username(username: str | None) -> str:
    value = (username or "").strip().lower()
    if not USERNAME_RE.match(value):
        raise ValidationError("Username must be 3-24 characters of a-z, 0-9 or _")
    return value


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if len(value) > 320 or not EMAIL_RE.match(value):
        raise ValidationError("Invalid email address")
    return value


def check_password(password: str | None) -> str:
    value = password or ""
    if len(value) < PASSWORD_MIN_LEN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LEN} characters")
    return value
