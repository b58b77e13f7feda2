"""Error taxonomy for the portal core."""
from __future__ import annotations


class PortalError(Exception):
    """Base class. `message` is safe to show to the caller."""

    message = "Request failed"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(PortalError):
    """Malformed username, email, password or token. The caller can fix and resubmit."""

    message = "Invalid input"


class DuplicateCredential(PortalError):
    """Username, email or alias already taken (unique constraint)."""

    message = "Username or email already in use"


class AuthenticationFailure(PortalError):
    """Wrong credentials or disabled account. Never says which."""

    message = "Login failed"


class InvalidOrExpiredToken(PortalError):
    """Reset token absent, expired or already consumed."""

    message = "Token invalid or expired"


class ConfigurationError(PortalError):
    """Requested PBKDF2 iteration count is above the configured ceiling."""

    message = "Password hashing misconfigured"


class StoreError(PortalError):
    """Persistence failure. Internals are logged, not returned."""

    message = "Database error"


class NotFound(PortalError):
    message = "Not found"


class Forbidden(PortalError):
    message = "Forbidden"


class MailRejected(PortalError):
    """Inbound message refused; message is the SMTP-facing reason."""

    message = "Rejected"
