"""Database models."""
from portal.models.base import Base, async_session_factory, init_db
from portal.models.capabilities import SchemaCapabilities
from portal.models.user import User
from portal.models.session import LoginSession
from portal.models.reset_token import ResetToken
from portal.models.alias import Alias
from portal.models.email import Email

__all__ = [
    "Base",
    "User",
    "LoginSession",
    "ResetToken",
    "Alias",
    "Email",
    "SchemaCapabilities",
    "async_session_factory",
    "init_db",
]
