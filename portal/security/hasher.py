"""Password hashing: salted PBKDF2-HMAC-SHA256 with a capped iteration policy."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from passlib.crypto.digest import pbkdf2_hmac
from passlib.utils import consteq

import config
from portal.errors import ConfigurationError
from portal.security.tokens import b64url_encode

logger = logging.getLogger("mailportal.security")

SALT_BYTES = 16
HASH_BYTES = 32  # 256-bit derived key


@dataclass(frozen=True)
class IterationPolicy:
    """Iteration bounds. Counts below minimum are raised to it; counts above maximum are refused."""

    minimum: int
    maximum: int
    default: int

    @classmethod
    def from_config(cls) -> "IterationPolicy":
        return cls(
            minimum=config.PBKDF2_MIN_ITERATIONS,
            maximum=config.PBKDF2_MAX_ITERATIONS,
            default=config.PBKDF2_DEFAULT_ITERATIONS,
        )

    def resolve(self, requested: Optional[int]) -> int | ConfigurationError:
        """Effective count for `requested` (None means the default), or the error if over the ceiling."""
        iterations = self.default if requested is None else requested
        if iterations > self.maximum:
            return ConfigurationError(
                f"PBKDF2 iterations {iterations} exceed the ceiling of {self.maximum}"
            )
        return max(iterations, self.minimum)


@dataclass(frozen=True)
class HashResult:
    """Either a derived hash (base64url) with the count actually used, or a ConfigurationError."""

    value: Optional[str] = None
    iterations: int = 0
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def new_salt() -> bytes:
    """Fresh random salt; generate one on every password set."""
    return secrets.token_bytes(SALT_BYTES)


def derive_hash(
    password: str,
    salt: bytes,
    iterations: Optional[int] = None,
    policy: Optional[IterationPolicy] = None,
) -> HashResult:
    policy = policy or IterationPolicy.from_config()
    effective = policy.resolve(iterations)
    if isinstance(effective, ConfigurationError):
        return HashResult(error=effective)
    key = pbkdf2_hmac("sha256", password.encode("utf-8"), salt, effective, HASH_BYTES)
    return HashResult(value=b64url_encode(key), iterations=effective)


def verify(
    password: str,
    salt: bytes,
    iterations: Optional[int],
    expected_hash: str,
    policy: Optional[IterationPolicy] = None,
) -> bool:
    """Recompute with the stored salt and count; constant-time compare against expected_hash."""
    result = derive_hash(password, salt, iterations, policy)
    if not result.ok:
        logger.error("Cannot verify credential: %s", result.error.message)
        return False
    return consteq(result.value, expected_hash)
