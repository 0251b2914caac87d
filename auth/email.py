"""
Outbound email: verification and password-reset links.

``ResendEmailSender`` posts to the Resend HTTP API with ``httpx``.  When
``RESEND_API_KEY`` is not configured, ``build_email_sender`` falls back to
``LoggingEmailSender`` which only logs the link (useful in development).
Delivery failures are raised to the caller; nothing is retried.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlencode

import httpx

from config.settings import Settings

logger = logging.getLogger(__name__)

_RESEND_URL = "https://api.resend.com/emails"


class EmailDeliveryError(RuntimeError):
    """The email provider rejected or failed to accept a message."""


class EmailSender(ABC):
    def __init__(self, client_url: str) -> None:
        self.client_url = client_url.rstrip("/")

    def _link(self, path: str, **params: str) -> str:
        return f"{self.client_url}/{path}?{urlencode(params)}"

    async def send_verify_email(self, email: str, token: str) -> None:
        link = self._link("verify-email", token=token)
        await self.send(
            to=email,
            subject="Verify your email",
            html=(
                "<h1>Verify your email</h1>"
                f'<p>Click <a href="{link}">here</a> to verify your email address.</p>'
            ),
        )

    async def send_forgot_password_email(self, email: str, token: str) -> None:
        link = self._link("reset-password", token=token)
        await self.send(
            to=email,
            subject="Reset your password",
            html=(
                "<h1>Reset your password</h1>"
                f'<p>Click <a href="{link}">here</a> to choose a new password.</p>'
            ),
        )

    @abstractmethod
    async def send(self, *, to: str, subject: str, html: str) -> None:
        ...


class LoggingEmailSender(EmailSender):
    async def send(self, *, to: str, subject: str, html: str) -> None:
        logger.info("Email (not sent) to=%s subject=%r body=%s", to, subject, html)


class ResendEmailSender(EmailSender):
    def __init__(self, api_key: str, sender: str, client_url: str, timeout: float = 10.0) -> None:
        super().__init__(client_url)
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    async def send(self, *, to: str, subject: str, html: str) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                resp = await client.post(
                    _RESEND_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={"from": self._sender, "to": [to], "subject": subject, "html": html},
                )
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Email delivery to %s failed: %s", to, exc)
                raise EmailDeliveryError(f"Failed to send email to {to}") from exc
        logger.info("Email sent to %s (%s)", to, subject)


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set; emails will be logged instead of sent.")
        return LoggingEmailSender(settings.client_url)
    return ResendEmailSender(settings.resend_api_key, settings.email_from, settings.client_url)
