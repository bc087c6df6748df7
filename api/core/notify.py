"""
Outbound notification helpers.

Used for OTP delivery:
- e-mail through SMTP (SSL on port 465, STARTTLS otherwise)
- SMS through a Textlocal-style HTTP gateway: form POST -> {"status": "success", ...}
"""

from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Any

import httpx

from .settings import Settings


# Delivery failures are explicit and separable from other runtime errors.
class NotifyError(RuntimeError):
    pass


def _send_email_blocking(settings: Settings, message: EmailMessage) -> None:
    if settings.smtp_port == 465:
        client: smtplib.SMTP = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=30)
    else:
        client = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30)
    with client:
        if settings.smtp_port != 465:
            client.starttls()
        if settings.smtp_user:
            client.login(settings.smtp_user, settings.smtp_password)
        client.send_message(message)


async def send_email(settings: Settings, *, to: str, subject: str, text: str) -> None:
    to = (to or "").strip()
    if not to or not subject or not text:
        raise NotifyError("Invalid request or missing parameters.")
    if not settings.email_enabled:
        raise NotifyError("E-mail delivery is not configured.")

    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)

    try:
        await asyncio.to_thread(_send_email_blocking, settings, message)
    except (smtplib.SMTPException, OSError) as exc:
        raise NotifyError(f"E-mail delivery failed: {exc}") from exc


async def send_sms(settings: Settings, *, numbers: str, message: str, timeout_s: float = 30.0) -> None:
    numbers = (numbers or "").strip()
    if not numbers or not message:
        raise NotifyError("Invalid request or missing parameters.")
    if not settings.sms_enabled:
        raise NotifyError("SMS delivery is not configured.")

    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            resp = await client.post(
                settings.sms_api_url,
                data={
                    "apikey": settings.sms_api_key,
                    "sender": settings.sms_sender,
                    "message": message,
                    "numbers": numbers,
                },
            )
    except httpx.HTTPError as exc:
        raise NotifyError(f"Failed to call SMS gateway: {exc}") from exc

    if resp.status_code != 200:
        raise NotifyError(f"SMS gateway request failed: {resp.status_code} {resp.text[:300]}")

    data: dict[str, Any] = resp.json()
    if data.get("status") != "success":
        raise NotifyError("SMS sending failed.")
