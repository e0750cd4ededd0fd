"""Outbound notifications: moderation webhook alerts and transactional email."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from opslink.core.config import get_settings
from opslink.core.errors import DeliveryError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class NotificationError(RuntimeError):
    """Raised when a notification attempt fails."""


@dataclass(slots=True)
class NotificationMessage:
    subject: str
    body: str


class NotificationProvider(Protocol):
    async def send(self, message: NotificationMessage) -> None:
        ...


class DiscordWebhookProvider:
    """Post messages to a Discord channel webhook."""

    def __init__(self, endpoint: str) -> None:
        self._endpoint = endpoint

    async def send(self, message: NotificationMessage) -> None:
        payload = {"content": f"**{message.subject}**\n{message.body}"}
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(self._endpoint, json=payload)
        if response.status_code >= 400:
            raise NotificationError(f"Webhook response {response.status_code}: {response.text}")


async def notify(provider: NotificationProvider, message: NotificationMessage) -> None:
    try:
        await provider.send(message)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to deliver notification: %s", exc)
        raise NotificationError(str(exc)) from exc


class NotificationDispatcher:
    """Best-effort fan-out of moderation events to configured providers.

    Delivery failures are logged and never reach the caller.
    """

    def __init__(self, providers: list[NotificationProvider] | None = None) -> None:
        self._providers = list(providers or [])

    @classmethod
    def from_settings(cls) -> NotificationDispatcher:
        settings = get_settings()
        providers: list[NotificationProvider] = []
        if settings.discord_webhook_url:
            providers.append(DiscordWebhookProvider(settings.discord_webhook_url))
        return cls(providers)

    async def dispatch(self, subject: str, body: str = "") -> None:
        message = NotificationMessage(subject=subject, body=body)
        for provider in self._providers:
            try:
                await notify(provider, message)
            except NotificationError:
                logger.warning("Dropped notification %r after delivery failure", subject)


class Mailer:
    """Send transactional email through the Resend HTTP API."""

    def __init__(self, api_key: str | None = None, sender: str | None = None, frontend_url: str | None = None) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.resend_api_key
        self._sender = sender or settings.email_from
        self._frontend_url = (frontend_url or settings.frontend_url).rstrip("/")

    async def send_email(self, to: str, subject: str, html: str) -> None:
        if not self._api_key:
            raise DeliveryError("Email delivery is not configured")
        headers = {"Authorization": f"Bearer {self._api_key}"}
        payload = {"from": self._sender, "to": to, "subject": subject, "html": html}
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.post(RESEND_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Failed to send email to %s: %s", to, exc)
            raise DeliveryError("Failed to send email") from exc
        if response.status_code >= 400:
            logger.error("Resend API error for %s: %s", to, response.text)
            raise DeliveryError("Failed to send email")
        logger.info("Email sent to %s", to)

    async def send_verification_email(self, to: str, token: str) -> None:
        link = f"{get_settings().api_base_url.rstrip('/')}/verify-email?token={token}"
        html = (
            "<p>Welcome to OpsLink!</p>"
            f'<p>Confirm your email address within 24 hours: <a href="{link}">{link}</a></p>'
        )
        await self.send_email(to, "Verify your OpsLink account", html)

    async def send_password_reset_email(self, to: str, token: str) -> None:
        link = f"{self._frontend_url}/reset-password?token={token}"
        html = (
            "<p>We received a request to reset your password.</p>"
            f'<p>This link expires in one hour: <a href="{link}">{link}</a></p>'
        )
        await self.send_email(to, "Reset your OpsLink password", html)
