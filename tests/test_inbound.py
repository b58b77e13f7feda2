"""Tests for inbound mail acceptance and the internal HTTP endpoint."""
from email.message import EmailMessage

import pytest
from aiohttp import test_utils
from sqlalchemy import select

import config
from portal.errors import MailRejected, StoreError
from portal.inbound_server import create_app
from portal.models import Alias, Email, User
from portal.services.background import drain
from portal.services.blob_store import FilesystemBlobStore
from portal.services.inbound import accept_message, parse_message

AUTH = {"Authorization": "Bearer inbound-secret"}


def _message(subject="Hello", text="plain body", html=None, sender="Carol <carol@sender.test>") -> bytes:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = "shop@mail.test"
    msg["Subject"] = subject
    msg["Date"] = "Tue, 01 Oct 2024 10:00:00 +0000"
    msg.set_content(text)
    if html is not None:
        msg.add_alternative(html, subtype="html")
    return msg.as_bytes()


async def _add_alias(session_factory, local="shop", alias_disabled=False, user_disabled=False):
    async with session_factory() as session:
        session.add(
            User(
                id="u1",
                username="owner",
                email="owner@example.com",
                pass_salt="c2FsdA",
                pass_hash="aGFzaA",
                role="user",
                alias_limit=3,
                disabled=user_disabled,
                created_at=0,
            )
        )
        session.add(Alias(local_part=local, user_id="u1", disabled=alias_disabled, created_at=0))
        await session.commit()


def test_parse_message_extracts_fields():
    parsed = parse_message(_message(html="<p>hi</p>"), envelope_from="bounce@sender.test")
    assert parsed.from_addr == "carol@sender.test"
    assert parsed.subject == "Hello"
    assert parsed.date.startswith("2024-10-01T10:00:00")
    assert parsed.text.strip() == "plain body"
    assert parsed.html.strip() == "<p>hi</p>"


def test_parse_message_falls_back_to_envelope_sender():
    raw = b"Subject: no from\r\n\r\nbody\r\n"
    parsed = parse_message(raw, envelope_from="bounce@sender.test")
    assert parsed.from_addr == "bounce@sender.test"
    assert parsed.html == ""
    assert parsed.date == ""


@pytest.mark.asyncio
async def test_accept_stores_message(session_factory):
    await _add_alias(session_factory)
    email_id = await accept_message(
        "Shop@Mail.Test", "carol@sender.test", _message(), session_factory=session_factory
    )
    async with session_factory() as session:
        stored = await session.scalar(select(Email).where(Email.id == email_id))
    assert stored.local_part == "shop"
    assert stored.user_id == "u1"
    assert stored.subject == "Hello"
    assert stored.raw_key is None
    assert stored.size == len(_message())


@pytest.mark.asyncio
async def test_accept_truncates_long_bodies(session_factory, monkeypatch):
    monkeypatch.setattr(config, "MAX_TEXT_CHARS", 10)
    await _add_alias(session_factory)
    email_id = await accept_message(
        "shop@mail.test", "", _message(text="x" * 100, html="<b>" + "y" * 100 + "</b>"),
        session_factory=session_factory,
    )
    async with session_factory() as session:
        stored = await session.scalar(select(Email).where(Email.id == email_id))
    assert len(stored.text) == 10
    assert len(stored.html) == 10


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "recipient,alias_disabled,user_disabled,reason",
    [
        ("shop@other.test", False, False, "Bad recipient"),
        ("no-at-sign", False, False, "Bad recipient"),
        ("nobody@mail.test", False, False, "Unknown recipient"),
        ("shop@mail.test", True, False, "Unknown recipient"),
        ("shop@mail.test", False, True, "Unknown recipient"),
    ],
)
async def test_accept_rejections(session_factory, recipient, alias_disabled, user_disabled, reason):
    await _add_alias(session_factory, alias_disabled=alias_disabled, user_disabled=user_disabled)
    with pytest.raises(MailRejected) as exc:
        await accept_message(recipient, "", _message(), session_factory=session_factory)
    assert exc.value.message == reason


@pytest.mark.asyncio
async def test_accept_rejects_oversize(session_factory, monkeypatch):
    monkeypatch.setattr(config, "MAX_STORE_BYTES", 100)
    await _add_alias(session_factory)
    with pytest.raises(MailRejected) as exc:
        await accept_message("shop@mail.test", "", _message(text="z" * 500), session_factory=session_factory)
    assert exc.value.message == "Message too large"


@pytest.mark.asyncio
async def test_accept_keeps_raw_copy_in_blob_store(session_factory, tmp_path):
    await _add_alias(session_factory)
    store = FilesystemBlobStore(tmp_path)
    raw = _message()
    email_id = await accept_message("shop@mail.test", "", raw, blob_store=store, session_factory=session_factory)
    await drain()
    assert (tmp_path / "emails" / f"{email_id}.eml").read_bytes() == raw

    await store.delete(f"emails/{email_id}.eml")
    await store.delete(f"emails/{email_id}.eml")
    assert not (tmp_path / "emails" / f"{email_id}.eml").exists()


@pytest.mark.asyncio
async def test_blob_store_refuses_keys_outside_root(tmp_path):
    with pytest.raises(ValueError):
        await FilesystemBlobStore(tmp_path).put("../escape.eml", b"x")


@pytest.mark.asyncio
async def test_inbound_endpoint(session_factory):
    await _add_alias(session_factory)
    app = create_app(session_factory=session_factory, blob_store=None)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        r = await client.post("/internal/inbound", params={"to": "shop@mail.test"}, data=_message())
        assert r.status == 401

        r = await client.post(
            "/internal/inbound",
            params={"to": "shop@mail.test", "from": "carol@sender.test"},
            data=_message(),
            headers=AUTH,
        )
        assert r.status == 200
        body = await r.json()
        assert body["ok"] is True

        r = await client.post(
            "/internal/inbound", params={"to": "nobody@mail.test"}, data=_message(), headers=AUTH
        )
        assert r.status == 422
        assert (await r.json())["error"] == "Unknown recipient"

        r = await client.post("/internal/inbound", data=_message(), headers=AUTH)
        assert r.status == 400

    async with session_factory() as session:
        ids = (await session.execute(select(Email.id))).scalars().all()
    assert ids == [body["id"]]


@pytest.mark.asyncio
async def test_inbound_endpoint_disabled_without_secret(session_factory, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_API_SECRET", "")
    app = create_app(session_factory=session_factory, blob_store=None)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        r = await client.post("/internal/inbound", params={"to": "shop@mail.test"}, data=b"x", headers=AUTH)
        assert r.status == 503


@pytest.mark.asyncio
async def test_raw_copy_not_written_when_store_fails(session_factory, commit_fails_store, tmp_path):
    await _add_alias(session_factory)
    with pytest.raises(StoreError):
        await accept_message(
            "shop@mail.test", "", _message(),
            blob_store=FilesystemBlobStore(tmp_path), session_factory=commit_fails_store,
        )
    await drain()
    assert not (tmp_path / "emails").exists()


@pytest.mark.asyncio
async def test_inbound_endpoint_store_failure_asks_for_retry(unreachable_store):
    app = create_app(session_factory=unreachable_store, blob_store=None)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        r = await client.post(
            "/internal/inbound", params={"to": "shop@mail.test"}, data=_message(), headers=AUTH
        )
        assert r.status == 503
        assert await r.json() == {"ok": False, "error": "Temporary processing error"}


@pytest.mark.asyncio
async def test_inbound_endpoint_rejects_body_over_read_limit(session_factory, monkeypatch):
    monkeypatch.setattr(config, "MAX_STORE_BYTES", 100)
    app = create_app(session_factory=session_factory, blob_store=None)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        r = await client.post(
            "/internal/inbound", params={"to": "shop@mail.test"}, data=b"x" * 5000, headers=AUTH
        )
        assert r.status == 422
        assert await r.json() == {"ok": False, "error": "Message too large"}
