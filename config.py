"""Configuration for the mail portal."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_int(value: str | None, fallback: int) -> int:
    if value is None or not value.strip():
        return fallback
    try:
        return int(value.strip())
    except ValueError:
        return fallback


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None or not value.strip():
        return fallback
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'mailportal.db'}",
)

# Mail domain that aliases live under (e.g. "mail.example.com")
DOMAIN = os.getenv("DOMAIN", "example.com").strip().lower()
APP_BASE_URL = os.getenv("APP_BASE_URL", "").rstrip("/")

# Sessions and password reset
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_TTL_SECONDS = _parse_int(os.getenv("SESSION_TTL_SECONDS"), 1209600)  # 14 days
RESET_TTL_SECONDS = _parse_int(os.getenv("RESET_TTL_SECONDS"), 3600)
SWEEP_ON_REQUEST = _parse_bool(os.getenv("SWEEP_ON_REQUEST"), True)  # Delete expired sessions/tokens per request

# PBKDF2 iteration policy (capped: below min is raised, above max is refused)
PBKDF2_MIN_ITERATIONS = _parse_int(os.getenv("PBKDF2_MIN_ITERATIONS"), 10000)
PBKDF2_MAX_ITERATIONS = _parse_int(os.getenv("PBKDF2_MAX_ITERATIONS"), 100000)
PBKDF2_DEFAULT_ITERATIONS = _parse_int(os.getenv("PBKDF2_DEFAULT_ITERATIONS"), 100000)

# Alias quotas
DEFAULT_ALIAS_LIMIT = _parse_int(os.getenv("DEFAULT_ALIAS_LIMIT"), 3)
MAX_ALIAS_LIMIT = _parse_int(os.getenv("MAX_ALIAS_LIMIT"), 1000)

# Outbound reset email (Resend). Empty key disables sending.
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
RESET_FROM = os.getenv("RESET_FROM", "") or f"no-reply@{DOMAIN}"

# Inbound mail (internal HTTP endpoint fed by the MTA)
INTERNAL_API_SECRET = os.getenv("INTERNAL_API_SECRET", "")  # Shared secret for MTA->portal requests
INBOUND_HOST = os.getenv("INBOUND_HOST", "0.0.0.0")
INBOUND_PORT = _parse_int(os.getenv("INBOUND_PORT"), 8001)
MAX_STORE_BYTES = _parse_int(os.getenv("MAX_STORE_BYTES"), 262144)
MAX_TEXT_CHARS = _parse_int(os.getenv("MAX_TEXT_CHARS"), 200000)
MAIL_BLOB_DIR = os.getenv("MAIL_BLOB_DIR", "")  # Empty: raw .eml copies are not kept
