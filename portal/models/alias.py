"""Email alias model."""
from __future__ import annotations

import re

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base

# Local part under config.DOMAIN: a-z0-9._+- , starts alphanumeric, max 64
LOCAL_PART_RE = re.compile(r"^[a-z0-9][a-z0-9._+-]{0,63}$")


def valid_local_part(local: str) -> bool:
    return bool(LOCAL_PART_RE.match(local))


class Alias(Base):
    """Alias owned by one user. Mail to <local_part>@DOMAIN lands in the owner's inbox."""

    __tablename__ = "aliases"

    local_part: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
