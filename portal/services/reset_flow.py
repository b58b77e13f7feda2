"""Password reset: single-use, time-limited tokens."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy import delete, select, update

import config
from portal.errors import InvalidOrExpiredToken, ValidationError
from portal.models import ResetToken, SchemaCapabilities, User, async_session_factory
from portal.security.hasher import IterationPolicy, derive_hash, new_salt
from portal.security.tokens import b64url_encode, digest, new_token
from portal.services.background import spawn
from portal.services.notifier import Notifier
from portal.services.store import now_sec, store_session
from portal.services.validation import check_password, normalize_email

logger = logging.getLogger("mailportal.reset")


class ResetFlowManager:
    """Issues reset tokens and consumes them exactly once."""

    def __init__(
        self,
        session_factory=async_session_factory,
        notifier: Optional[Notifier] = None,
        capabilities: Optional[SchemaCapabilities] = None,
        policy: Optional[IterationPolicy] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], int] = now_sec,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._capabilities = capabilities or SchemaCapabilities()
        self._policy = policy or IterationPolicy.from_config()
        self._ttl = config.RESET_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock

    async def request_reset(self, email: str, now: Optional[int] = None) -> None:
        """Always succeeds for a well-formed address, whether or not an account owns it."""
        email = normalize_email(email)
        t = self._clock() if now is None else now
        async with store_session(self._session_factory, "reset request") as session:
            result = await session.execute(select(User.id, User.disabled).where(User.email == email))
            row = result.first()
            if row is None or row.disabled:
                return
            token = new_token()
            session.add(
                ResetToken(
                    token_hash=digest(token),
                    user_id=row.id,
                    expires_at=t + self._ttl,
                    created_at=t,
                )
            )
            await session.commit()
        if self._notifier is not None:
            spawn(self._notifier.send_reset(email, token), name="reset-email")

    async def confirm_reset(self, token: str, new_password: str, now: Optional[int] = None) -> None:
        """Set a new password and consume the token, both in one transaction."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Token required")
        check_password(new_password)
        t = self._clock() if now is None else now
        token_hash = digest(token)
        live = (ResetToken.token_hash == token_hash, ResetToken.expires_at > t)

        async with store_session(self._session_factory, "reset confirm") as session:
            row = (await session.execute(select(ResetToken.user_id).where(*live))).first()
            if row is None:
                raise InvalidOrExpiredToken()

            salt = new_salt()
            hashed = await asyncio.to_thread(derive_hash, new_password, salt, None, self._policy)
            if not hashed.ok:
                raise hashed.error

            consumed = await session.execute(delete(ResetToken).where(*live))
            if consumed.rowcount != 1:
                # Consumed by a concurrent confirm between our read and delete
                await session.rollback()
                raise InvalidOrExpiredToken()
            values = {"pass_salt": b64url_encode(salt), "pass_hash": hashed.value}
            if self._capabilities.password_iterations:
                values["pass_iterations"] = hashed.iterations
            await session.execute(update(User).where(User.id == row.user_id).values(**values))
            await session.commit()
        logger.info("Password reset completed for user %s", row.user_id)

    async def sweep_expired(self, now: Optional[int] = None) -> int:
        t = self._clock() if now is None else now
        async with store_session(self._session_factory, "reset token sweep") as session:
            result = await session.execute(delete(ResetToken).where(ResetToken.expires_at <= t))
            await session.commit()
        if result.rowcount:
            logger.info("Swept %d expired reset token(s)", result.rowcount)
        return result.rowcount
