"""Authentication for web API: session cookies, service wiring, role checks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, Response, status

import config
from portal.models import SchemaCapabilities, async_session_factory
from portal.services.accounts import AccountService
from portal.services.notifier import Notifier
from portal.services.reset_flow import ResetFlowManager
from portal.services.sessions import SessionManager, UserIdentity


@dataclass
class Services:
    sessions: SessionManager
    resets: ResetFlowManager
    accounts: AccountService

    async def sweep_expired(self) -> None:
        """Drop expired sessions and reset tokens."""
        await self.sessions.sweep_expired()
        await self.resets.sweep_expired()


_services: Optional[Services] = None


def configure(capabilities: SchemaCapabilities, notifier: Optional[Notifier] = None, session_factory=None) -> Services:
    """Build the services for this process. Called once at startup, after init_db() probed the schema."""
    global _services
    factory = session_factory or async_session_factory
    sessions = SessionManager(factory)
    _services = Services(
        sessions=sessions,
        resets=ResetFlowManager(factory, notifier=notifier, capabilities=capabilities),
        accounts=AccountService(sessions, factory, capabilities=capabilities),
    )
    return _services


def get_services() -> Services:
    if _services is None:
        raise RuntimeError("Services not configured; call web.auth.configure() at startup")
    return _services


async def authenticate(cookie_value: Optional[str]) -> Optional[UserIdentity]:
    """Resolve a session cookie to its user. None means unauthenticated."""
    return await get_services().sessions.resolve(cookie_value)


async def get_current_user(
    session_token: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE_NAME),
) -> Optional[UserIdentity]:
    """Return current user from the session cookie, or None if not authenticated."""
    return await authenticate(session_token)


async def require_user(
    user: Optional[UserIdentity] = Depends(get_current_user),
) -> UserIdentity:
    """Require authenticated user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_admin(user: UserIdentity) -> UserIdentity:
    """Require admin role. Raises 403 if insufficient."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def require_admin_user(
    user: UserIdentity = Depends(require_user),
) -> UserIdentity:
    """Dependency: require logged-in admin."""
    return require_admin(user)


def set_session_cookie(response: Response, request: Request, token: str) -> None:
    """HttpOnly, SameSite=Lax, Path=/, Max-Age = session TTL; Secure over TLS."""
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        token,
        max_age=config.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )


def clear_session_cookie(response: Response, request: Request) -> None:
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
