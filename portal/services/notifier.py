"""Outbound reset emails through the Resend HTTP API."""
from __future__ import annotations

import html
import logging
from typing import Optional, Protocol
from urllib.parse import quote

import httpx

import config

logger = logging.getLogger("mailportal.notify")

RESET_SUBJECT = "Reset your mail portal password"


class Notifier(Protocol):
    async def send_reset(self, to_address: str, token: str) -> None: ...


def reset_link(token: str, base_url: str) -> str:
    """Link to the reset page with the token in the fragment (never sent to the server logs)."""
    if not base_url:
        return ""
    return f"{base_url}/reset#token={quote(token, safe='')}"


def render_reset_html(token: str, link: str) -> str:
    button = (
        f'<p><a href="{html.escape(link, quote=True)}">Reset password</a></p>' if link else ""
    )
    return (
        "<div style=\"font-family:sans-serif;max-width:600px;margin:0 auto;padding:20px\">"
        "<h2>Reset password</h2>"
        "<p>Someone asked to reset the password for your account.</p>"
        f"<p>Reset token:</p><p style=\"font-family:monospace;word-break:break-all\">{html.escape(token)}</p>"
        f"{button}"
        "<p>If this wasn't you, ignore this email.</p>"
        "</div>"
    )


class ResendNotifier:
    """Sends the reset token. Without an API key every send is a no-op."""

    def __init__(
        self,
        api_key: str = config.RESEND_API_KEY,
        sender: str = config.RESET_FROM,
        base_url: str = config.APP_BASE_URL,
        api_url: str = config.RESEND_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url
        self.api_url = api_url
        self._transport = transport

    async def send_reset(self, to_address: str, token: str) -> None:
        if not self.api_key:
            logger.debug("RESEND_API_KEY not set - skipping reset email")
            return
        payload = {
            "from": self.sender,
            "to": [to_address],
            "subject": RESET_SUBJECT,
            "html": render_reset_html(token, reset_link(token, self.base_url)),
        }
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            r = await client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        if r.status_code >= 300:
            logger.warning("Resend failed: %s %s", r.status_code, r.text[:300])
