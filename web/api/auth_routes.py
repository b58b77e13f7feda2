"""Auth API routes: signup, login, logout, password reset, current user."""
from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, Request, Response
from pydantic import BaseModel

import config
from portal.services.sessions import UserIdentity
from web.api.utils import user_payload
from web.auth import (
    clear_session_cookie,
    get_services,
    require_user,
    set_session_cookie,
)

router = APIRouter(prefix="/api", tags=["auth"])


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


class ResetRequest(BaseModel):
    email: str


class ResetConfirm(BaseModel):
    token: str
    new_password: str


@router.post("/auth/signup")
async def signup(body: SignupRequest, request: Request, response: Response):
    """Create an account and start a session. The first account becomes admin."""
    user, token = await get_services().accounts.signup(body.username, body.email, body.password)
    set_session_cookie(response, request, token)
    return {"ok": True, "user": user_payload(user)}


@router.post("/auth/login")
async def login(body: LoginRequest, request: Request, response: Response):
    """Authenticate with username or email and set the session cookie."""
    user, token = await get_services().accounts.login(body.identifier, body.password)
    set_session_cookie(response, request, token)
    return {"ok": True, "user": user_payload(user)}


@router.post("/auth/logout")
async def logout(
    request: Request,
    response: Response,
    session_token: str | None = Cookie(None, alias=config.SESSION_COOKIE_NAME),
):
    """Revoke the current session (if any) and clear the cookie."""
    await get_services().sessions.destroy(session_token)
    clear_session_cookie(response, request)
    return {"ok": True}


@router.post("/auth/reset/request")
async def reset_request(body: ResetRequest):
    """Email a reset token. Same answer whether or not the address has an account."""
    await get_services().resets.request_reset(body.email)
    return {"ok": True}


@router.post("/auth/reset/confirm")
async def reset_confirm(body: ResetConfirm):
    """Set a new password with a reset token. Each token works once."""
    await get_services().resets.confirm_reset(body.token, body.new_password)
    return {"ok": True}


@router.get("/me")
async def get_me(user: UserIdentity = Depends(require_user)):
    """Get current authenticated user."""
    return {"ok": True, "user": user_payload(user)}
