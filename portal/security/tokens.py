"""Random tokens and their stored digest form."""
from __future__ import annotations

import base64
import hashlib
import secrets

TOKEN_BYTES = 32


def b64url_encode(data: bytes) -> str:
    """URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def new_token() -> str:
    """32 random bytes as URL-safe text. Hand to the client, never store it."""
    return b64url_encode(secrets.token_bytes(TOKEN_BYTES))


def digest(token: str) -> str:
    """SHA-256 of the token's UTF-8 bytes, base64url. This is what gets persisted."""
    return b64url_encode(hashlib.sha256(token.encode("utf-8")).digest())
