"""Account lifecycle: signup, login, admin changes."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy import case, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import undefer

import config
from portal.errors import AuthenticationFailure, DuplicateCredential, NotFound, ValidationError
from portal.models import SchemaCapabilities, User, async_session_factory
from portal.security.hasher import IterationPolicy, derive_hash, new_salt, verify
from portal.security.tokens import b64url_decode, b64url_encode
from portal.services.sessions import SessionManager, UserIdentity
from portal.services.store import now_sec, store_session
from portal.services.validation import check_password, normalize_email, normalize_username

logger = logging.getLogger("mailportal.accounts")

# Verified against when no account matches, so a miss costs the same PBKDF2 work as a hit
_DUMMY_SALT = bytes(16)
_DUMMY_HASH = b64url_encode(bytes(32))


class AccountService:
    """Creates and authenticates users. PBKDF2 work runs in a worker thread."""

    def __init__(
        self,
        sessions: SessionManager,
        session_factory=async_session_factory,
        capabilities: Optional[SchemaCapabilities] = None,
        policy: Optional[IterationPolicy] = None,
        default_alias_limit: Optional[int] = None,
        clock: Callable[[], int] = now_sec,
    ):
        self.sessions = sessions
        self._session_factory = session_factory
        self._capabilities = capabilities or SchemaCapabilities()
        self._policy = policy or IterationPolicy.from_config()
        self._default_alias_limit = (
            config.DEFAULT_ALIAS_LIMIT if default_alias_limit is None else default_alias_limit
        )
        self._clock = clock

    async def signup(self, username: str, email: str, password: str) -> tuple[UserIdentity, str]:
        """Create the account and log it in. Returns (identity, raw session token)."""
        username = normalize_username(username)
        email = normalize_email(email)
        check_password(password)

        salt = new_salt()
        hashed = await asyncio.to_thread(derive_hash, password, salt, None, self._policy)
        if not hashed.ok:
            raise hashed.error

        user_id = str(uuid.uuid4())
        async with store_session(self._session_factory, "signup") as session:
            values = {
                "id": user_id,
                "username": username,
                "email": email,
                "pass_salt": b64url_encode(salt),
                "pass_hash": hashed.value,
                "alias_limit": self._default_alias_limit,
                "disabled": False,
                "created_at": self._clock(),
            }
            if self._capabilities.password_iterations:
                values["pass_iterations"] = hashed.iterations
            # Role is decided inside the INSERT so two first signups cannot both see an empty table
            first_user = ~select(User.id).correlate(None).exists()
            row = select(
                *(literal(v).label(k) for k, v in values.items()),
                case((first_user, "admin"), else_="user").label("role"),
            )
            try:
                await session.execute(insert(User).from_select([*values, "role"], row))
                role = await session.scalar(select(User.role).where(User.id == user_id))
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateCredential() from e

        if role == "admin":
            logger.info("First account %s created as admin", username)
        identity = UserIdentity(
            id=user_id,
            username=username,
            email=email,
            role=role,
            alias_limit=self._default_alias_limit,
        )
        return identity, await self.sessions.create(user_id)

    async def login(self, identifier: str, password: str) -> tuple[UserIdentity, str]:
        """identifier is a username or an email. Every failure looks the same to the caller."""
        ident = (identifier or "").strip().lower()
        if not ident or not password:
            raise ValidationError("Username/email and password are required")

        stmt = select(User).where(or_(User.username == ident, User.email == ident))
        if self._capabilities.password_iterations:
            stmt = stmt.options(undefer(User.pass_iterations))
        async with store_session(self._session_factory, "login") as session:
            user = (await session.execute(stmt)).scalars().first()

        if user is None or user.disabled:
            await asyncio.to_thread(verify, password, _DUMMY_SALT, None, _DUMMY_HASH, self._policy)
            raise AuthenticationFailure()
        iterations = user.pass_iterations if self._capabilities.password_iterations else None
        ok = await asyncio.to_thread(
            verify, password, b64url_decode(user.pass_salt), iterations, user.pass_hash, self._policy
        )
        if not ok:
            raise AuthenticationFailure()
        return UserIdentity.from_user(user), await self.sessions.create(user.id)

    async def update_user(
        self, user_id: str, alias_limit: Optional[int] = None, disabled: Optional[bool] = None
    ) -> None:
        """Admin change of quota and/or account status."""
        values: dict = {}
        if alias_limit is not None:
            if not 0 <= alias_limit <= config.MAX_ALIAS_LIMIT:
                raise ValidationError(f"alias_limit must be between 0 and {config.MAX_ALIAS_LIMIT}")
            values["alias_limit"] = alias_limit
        if disabled is not None:
            values["disabled"] = bool(disabled)
        if not values:
            raise ValidationError("No fields to update")

        async with store_session(self._session_factory, "user update") as session:
            result = await session.execute(update(User).where(User.id == user_id).values(**values))
            await session.commit()
        if result.rowcount == 0:
            raise NotFound("User not found")
        logger.info("User %s updated: %s", user_id, values)
