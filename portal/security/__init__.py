"""Credential hashing and token primitives. Pure functions, no storage."""
from portal.security.hasher import HashResult, IterationPolicy, derive_hash, new_salt, verify
from portal.security.tokens import b64url_decode, b64url_encode, digest, new_token

__all__ = [
    "HashResult",
    "IterationPolicy",
    "derive_hash",
    "new_salt",
    "verify",
    "b64url_decode",
    "b64url_encode",
    "digest",
    "new_token",
]
