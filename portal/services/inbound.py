"""Accept an inbound message for an alias: check recipient, parse, store."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from typing import Optional

from sqlalchemy import select

import config
from portal.errors import MailRejected
from portal.models import Alias, Email, User, async_session_factory
from portal.services.background import spawn
from portal.services.blob_store import BlobStore
from portal.services.store import now_sec, store_session

logger = logging.getLogger("mailportal.inbound")


@dataclass
class ParsedMessage:
    from_addr: str
    subject: str
    date: str
    text: str
    html: str


def _body(msg: EmailMessage, subtype: str) -> str:
    part = msg.get_body(preferencelist=(subtype,))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeError):
        # Unknown or lying charset
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def parse_message(raw: bytes, envelope_from: str = "") -> ParsedMessage:
    msg = BytesParser(policy=policy.default).parsebytes(raw)
    from_header = msg.get("From")
    from_addr = envelope_from
    if from_header is not None and from_header.addresses:
        from_addr = from_header.addresses[0].addr_spec or envelope_from
    date = ""
    if msg.get("Date"):
        try:
            date = parsedate_to_datetime(str(msg["Date"])).isoformat()
        except (TypeError, ValueError):
            date = ""
    return ParsedMessage(
        from_addr=from_addr,
        subject=str(msg.get("Subject") or ""),
        date=date,
        text=_body(msg, "plain"),
        html=_body(msg, "html"),
    )


async def accept_message(
    recipient: str,
    sender: str,
    raw: bytes,
    blob_store: Optional[BlobStore] = None,
    session_factory=async_session_factory,
) -> str:
    """Store the message and return its id, or raise MailRejected with the reason for the MTA."""
    to = (recipient or "").strip().lower()
    local, _, domain = to.partition("@")
    if not local or domain != config.DOMAIN:
        raise MailRejected("Bad recipient")

    async with store_session(session_factory, "inbound lookup") as session:
        row = (
            await session.execute(
                select(Alias.local_part, Alias.user_id, Alias.disabled, User.disabled.label("user_disabled"))
                .join(User, User.id == Alias.user_id)
                .where(Alias.local_part == local)
            )
        ).first()
    if row is None or row.disabled or row.user_disabled:
        raise MailRejected("Unknown recipient")

    if len(raw) > config.MAX_STORE_BYTES:
        raise MailRejected("Message too large")

    parsed = parse_message(raw, envelope_from=sender or "")
    email_id = str(uuid.uuid4())
    raw_key = f"emails/{email_id}.eml" if blob_store is not None else None

    limit = config.MAX_TEXT_CHARS
    async with store_session(session_factory, "inbound store") as session:
        session.add(
            Email(
                id=email_id,
                local_part=row.local_part,
                user_id=row.user_id,
                from_addr=parsed.from_addr[:320],
                to_addr=recipient[:320],
                subject=parsed.subject,
                date=parsed.date,
                text=parsed.text[:limit],
                html=parsed.html[:limit],
                raw_key=raw_key,
                size=len(raw),
                created_at=now_sec(),
            )
        )
        await session.commit()
    if raw_key is not None:
        spawn(blob_store.put(raw_key, raw), name=f"blob-put-{email_id}")
    logger.info("Stored message %s for alias %s (%d bytes)", email_id, row.local_part, len(raw))
    return email_id
