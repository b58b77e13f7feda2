"""Stored inbound email."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base


class Email(Base):
    """Parsed message delivered to an alias. The raw .eml lives in the blob store under raw_key."""

    __tablename__ = "emails"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # uuid4
    local_part: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    from_addr: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    to_addr: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    subject: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date: Mapped[str] = mapped_column(String(40), nullable=False, default="")  # ISO-8601 or empty
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    raw_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
