"""API routes for aliases and the inbox."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

import config
from portal.errors import DuplicateCredential, Forbidden, NotFound, ValidationError
from portal.models import Alias, Email, async_session_factory
from portal.models.alias import valid_local_part
from portal.services.background import spawn
from portal.services.blob_store import get_blob_store
from portal.services.sessions import UserIdentity
from portal.services.store import now_sec, store_session
from web.auth import require_user

logger = logging.getLogger("mailportal.api")

router = APIRouter(prefix="/api", tags=["mailbox"])

INBOX_PAGE_SIZE = 50


# --- Pydantic schemas ---


class AliasCreate(BaseModel):
    local: str


class AliasResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    local_part: str
    disabled: bool
    created_at: int


class EmailSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    from_addr: str
    to_addr: str
    subject: str
    date: str
    created_at: int


class EmailDetail(EmailSummary):
    text: str
    html: str
    size: int


def _local_part(value: str) -> str:
    local = (value or "").strip().lower()
    if not valid_local_part(local):
        raise ValidationError("Invalid alias (a-z0-9._+- , max 64)")
    return local


# --- Aliases ---


@router.get("/aliases", response_model=list[AliasResponse])
async def list_aliases(user: UserIdentity = Depends(require_user)):
    """Aliases owned by the current user, newest first."""
    async with store_session(async_session_factory, "alias list") as session:
        result = await session.execute(
            select(Alias).where(Alias.user_id == user.id).order_by(Alias.created_at.desc())
        )
        return [AliasResponse.model_validate(a) for a in result.scalars().all()]


@router.post("/aliases", response_model=AliasResponse)
async def create_alias(body: AliasCreate, user: UserIdentity = Depends(require_user)):
    """Claim <local>@DOMAIN. Only enabled aliases count toward the user's limit."""
    local = _local_part(body.local)
    async with store_session(async_session_factory, "alias create") as session:
        count = await session.scalar(
            select(func.count()).select_from(Alias).where(Alias.user_id == user.id, Alias.disabled.is_(False))
        )
        if (count or 0) >= user.alias_limit:
            raise Forbidden("Alias limit reached")
        alias = Alias(local_part=local, user_id=user.id, disabled=False, created_at=now_sec())
        session.add(alias)
        try:
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            raise DuplicateCredential("Alias already taken") from e
        logger.info("Alias %s@%s created by %s", local, config.DOMAIN, user.username)
        return AliasResponse.model_validate(alias)


@router.delete("/aliases/{local}")
async def delete_alias(local: str, user: UserIdentity = Depends(require_user)):
    """Release an alias. Mail already stored for it stays in the inbox."""
    local = _local_part(local)
    async with store_session(async_session_factory, "alias delete") as session:
        result = await session.execute(
            delete(Alias).where(Alias.local_part == local, Alias.user_id == user.id)
        )
        await session.commit()
    if result.rowcount == 0:
        raise NotFound()
    return {"ok": True}


# --- Emails ---


@router.get("/emails", response_model=list[EmailSummary])
async def list_emails(alias: str = Query(""), user: UserIdentity = Depends(require_user)):
    """Latest messages for one of the user's enabled aliases."""
    local = _local_part(alias)
    async with store_session(async_session_factory, "email list") as session:
        own = await session.scalar(
            select(Alias.local_part).where(
                Alias.local_part == local, Alias.user_id == user.id, Alias.disabled.is_(False)
            )
        )
        if own is None:
            raise Forbidden("Alias is not yours or is disabled")
        result = await session.execute(
            select(Email)
            .where(Email.user_id == user.id, Email.local_part == local)
            .order_by(Email.created_at.desc())
            .limit(INBOX_PAGE_SIZE)
        )
        return [EmailSummary.model_validate(e) for e in result.scalars().all()]


@router.get("/emails/{email_id}", response_model=EmailDetail)
async def get_email(email_id: str, user: UserIdentity = Depends(require_user)):
    async with store_session(async_session_factory, "email read") as session:
        email = await session.scalar(select(Email).where(Email.id == email_id, Email.user_id == user.id))
    if email is None:
        raise NotFound()
    return EmailDetail.model_validate(email)


@router.delete("/emails/{email_id}")
async def delete_email(email_id: str, user: UserIdentity = Depends(require_user)):
    """Delete a message; its raw copy is removed from the blob store in the background."""
    async with store_session(async_session_factory, "email delete") as session:
        raw_key = await session.scalar(
            select(Email.raw_key).where(Email.id == email_id, Email.user_id == user.id)
        )
        result = await session.execute(
            delete(Email).where(Email.id == email_id, Email.user_id == user.id)
        )
        await session.commit()
    if result.rowcount == 0:
        raise NotFound()
    blob_store = get_blob_store()
    if raw_key and blob_store is not None:
        spawn(blob_store.delete(raw_key), name=f"blob-delete-{email_id}")
    return {"ok": True}
