"""Admin API routes: per-user alias quota and account status."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.errors import ValidationError
from portal.services.sessions import UserIdentity
from web.auth import get_services, require_admin_user

router = APIRouter(prefix="/api/admin", tags=["admin"])


class UpdateUserRequest(BaseModel):
    alias_limit: Optional[int] = None
    disabled: Optional[bool] = None  # also accepts 0/1


@router.patch("/users/{user_id}")
async def update_user(user_id: str, body: UpdateUserRequest, admin: UserIdentity = Depends(require_admin_user)):
    """Update alias_limit and/or disabled (admin only). A disabled user's sessions stop working at once."""
    if user_id == admin.id and body.disabled:
        raise ValidationError("Cannot disable your own account")
    await get_services().accounts.update_user(user_id, alias_limit=body.alias_limit, disabled=body.disabled)
    return {"ok": True}
