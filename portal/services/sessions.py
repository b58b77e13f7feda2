"""Session tokens: issue, resolve to a user, revoke, sweep."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import delete, select

import config
from portal.models import LoginSession, User, async_session_factory
from portal.security.tokens import digest, new_token
from portal.services.store import now_sec, store_session

logger = logging.getLogger("mailportal.sessions")


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated user behind a session."""

    id: str
    username: str
    email: str
    role: str
    alias_limit: int

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "UserIdentity":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            alias_limit=user.alias_limit,
        )


class SessionManager:
    """Sessions live in the store as (digest, user_id, expires_at, created_at).

    Several sessions per user may be active at once. A session stops resolving when
    it expires, is destroyed, or its owner is disabled; it never becomes active again.
    """

    def __init__(self, session_factory=async_session_factory, clock: Callable[[], int] = now_sec):
        self._session_factory = session_factory
        self._clock = clock

    async def create(self, user_id: str, ttl_seconds: Optional[int] = None, now: Optional[int] = None) -> str:
        """Persist a new session and return the raw token for the cookie."""
        ttl = config.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        t = self._clock() if now is None else now
        token = new_token()
        async with store_session(self._session_factory, "session create") as session:
            session.add(
                LoginSession(
                    token_hash=digest(token),
                    user_id=user_id,
                    expires_at=t + ttl,
                    created_at=t,
                )
            )
            await session.commit()
        return token

    async def resolve(self, raw_token: Optional[str], now: Optional[int] = None) -> Optional[UserIdentity]:
        """Identity for a live session, or None. Unknown tokens are not an error."""
        if not raw_token:
            return None
        t = self._clock() if now is None else now
        async with store_session(self._session_factory, "session resolve") as session:
            result = await session.execute(
                select(User)
                .join(LoginSession, LoginSession.user_id == User.id)
                .where(LoginSession.token_hash == digest(raw_token), LoginSession.expires_at > t)
            )
            user = result.scalar_one_or_none()
        if user is None or user.disabled:
            return None
        return UserIdentity.from_user(user)

    async def destroy(self, raw_token: Optional[str]) -> None:
        """Delete the session for raw_token. No-op if it does not exist."""
        if not raw_token:
            return
        async with store_session(self._session_factory, "session destroy") as session:
            await session.execute(delete(LoginSession).where(LoginSession.token_hash == digest(raw_token)))
            await session.commit()

    async def sweep_expired(self, now: Optional[int] = None) -> int:
        """Delete sessions with expires_at <= now. Returns the number removed."""
        t = self._clock() if now is None else now
        async with store_session(self._session_factory, "session sweep") as session:
            result = await session.execute(delete(LoginSession).where(LoginSession.expires_at <= t))
            await session.commit()
        if result.rowcount:
            logger.info("Swept %d expired session(s)", result.rowcount)
        return result.rowcount
