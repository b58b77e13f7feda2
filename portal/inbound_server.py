"""Internal HTTP endpoint the MTA posts inbound messages to."""
from __future__ import annotations

import logging

import aiohttp.web

import config
from portal.errors import MailRejected, StoreError
from portal.models import async_session_factory
from portal.services.blob_store import get_blob_store
from portal.services.inbound import accept_message

logger = logging.getLogger("mailportal.http")


async def _handle_inbound(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/inbound?to=<rcpt>&from=<sender> - body is the raw RFC 822 message."""
    auth = request.headers.get("Authorization")
    if not config.INTERNAL_API_SECRET:
        logger.warning("INTERNAL_API_SECRET not set - rejecting inbound message")
        return aiohttp.web.json_response({"ok": False, "error": "Internal API not configured"}, status=503)
    if auth != f"Bearer {config.INTERNAL_API_SECRET}":
        return aiohttp.web.json_response({"ok": False, "error": "Unauthorized"}, status=401)

    recipient = request.query.get("to", "")
    sender = request.query.get("from", "")
    if not recipient:
        return aiohttp.web.json_response({"ok": False, "error": "to required"}, status=400)
    try:
        raw = await request.read()
    except aiohttp.web.HTTPRequestEntityTooLarge:
        return aiohttp.web.json_response({"ok": False, "error": "Message too large"}, status=422)

    try:
        email_id = await accept_message(
            recipient,
            sender,
            raw,
            blob_store=request.app["blob_store"],
            session_factory=request.app["session_factory"],
        )
    except MailRejected as e:
        logger.info("Rejected message to %s: %s", recipient, e.message)
        return aiohttp.web.json_response({"ok": False, "error": e.message}, status=422)
    except StoreError:
        return aiohttp.web.json_response(
            {"ok": False, "error": "Temporary processing error"}, status=503
        )
    return aiohttp.web.json_response({"ok": True, "id": email_id})


def create_app(session_factory=None, blob_store=None) -> aiohttp.web.Application:
    """Create aiohttp app. Defaults to the configured database and blob store."""
    app = aiohttp.web.Application(client_max_size=config.MAX_STORE_BYTES + 1024)
    app["session_factory"] = session_factory or async_session_factory
    app["blob_store"] = blob_store if blob_store is not None else get_blob_store()
    app.router.add_post("/internal/inbound", _handle_inbound)
    return app


async def start_inbound_server(
    host: str = config.INBOUND_HOST, port: int = config.INBOUND_PORT
) -> aiohttp.web.AppRunner | None:
    """Start the internal HTTP server. Returns the runner, or None when no secret is configured."""
    if not config.INTERNAL_API_SECRET:
        logger.info("INTERNAL_API_SECRET not set - skipping inbound HTTP server")
        return None
    runner = aiohttp.web.AppRunner(create_app())
    await runner.setup()
    site = aiohttp.web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Inbound HTTP server listening on %s:%d", host, port)
    return runner
