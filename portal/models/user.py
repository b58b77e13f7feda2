"""Portal user model."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base


class User(Base):
    """Portal account. The first account ever created is the admin."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # uuid4
    username: Mapped[str] = mapped_column(String(24), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    pass_salt: Mapped[str] = mapped_column(String(32), nullable=False)  # base64url, 16 bytes
    pass_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # base64url, 32 bytes
    # Deferred: older databases lack this column (see SchemaCapabilities)
    pass_iterations: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, deferred=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")  # user, admin
    alias_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)  # epoch seconds
