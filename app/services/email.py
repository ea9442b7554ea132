"""
Email service: sends verification emails.

Three transports, picked by ``build_email_sender()``:

* a transactional email HTTP API (production, when configured)
* SMTP via aiosmtplib
* the Telegram testing receiver (development only)

With none configured, emails are logged to the console so you can see
what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import asyncio
import logging
from email.mime.text import MIMEText
from pathlib import Path
from urllib.parse import quote

import aiosmtplib

from app import config
from app.services.delivery import ConsoleSender, TelegramTestingSender, post_json
from app.verification.errors import DeliveryFailed
from app.verification.flow import OutgoingMessage, Sender

logger = logging.getLogger(__name__)

REGISTER_FLOW = "register"
RESET_PASSWORD_FLOW = "resetPassword"


# ── Content ───────────────────────────────────────────────────────────────


def build_verification_url(email: str, token: str, flow: str) -> str:
    return (
        config.EMAIL_VERIFICATION_URL_TEMPLATE
        .replace("{email}", quote(email, safe=""))
        .replace("{token}", quote(token, safe=""))
        .replace("{flow}", quote(flow, safe=""))
    )


def _load_template(name: str) -> str:
    return (Path(config.TEMPLATES_DIR) / name).read_text(encoding="utf-8")


def compose_verification_email(email: str, token: str, *, is_reset_password: bool) -> OutgoingMessage:
    """Registration email for new addresses, password reset for known ones."""
    if is_reset_password:
        template = _load_template("reset-password-email.txt")
        subject = config.EMAIL_RESET_PASSWORD_SUBJECT
        flow = RESET_PASSWORD_FLOW
    else:
        template = _load_template("registration-email.txt")
        subject = config.EMAIL_REGISTRATION_SUBJECT
        flow = REGISTER_FLOW

    url = build_verification_url(email, token, flow)
    return OutgoingMessage(subject=subject, body=template.replace("{url}", url))


# ── Transports ────────────────────────────────────────────────────────────


class ApiEmailSender:
    def __init__(self, url: str, token: str) -> None:
        self._url = url
        self._token = token

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        await post_json(
            self._url,
            {
                "fromAddress": config.EMAIL_FROM_ADDRESS,
                "fromName": config.EMAIL_FROM_NAME,
                "toAddress": destination,
                "subject": message.subject,
                "content": [{"type": "text/plain", "value": message.body}],
            },
            token=self._token,
        )
        logger.info("Verification email sent to %s via API", destination)


class SmtpEmailSender:
    async def send(self, destination: str, message: OutgoingMessage) -> None:
        msg = MIMEText(message.body, "plain", "utf-8")
        msg["Subject"] = message.subject or ""
        msg["From"] = f"{config.EMAIL_FROM_NAME} <{config.EMAIL_FROM_ADDRESS}>"
        msg["To"] = destination

        try:
            async with asyncio.timeout(config.DELIVERY_TIMEOUT):
                await aiosmtplib.send(
                    msg,
                    hostname=config.SMTP_HOST,
                    port=config.SMTP_PORT,
                    username=config.SMTP_USERNAME,
                    password=config.SMTP_PASSWORD,
                    start_tls=config.SMTP_USE_TLS,
                    timeout=config.DELIVERY_TIMEOUT,
                )
        except (aiosmtplib.SMTPException, TimeoutError) as exc:
            logger.exception("Failed to send email to %s", destination)
            raise DeliveryFailed(f"SMTP delivery failed: {exc}") from exc
        logger.info("Verification email sent to %s via SMTP", destination)


def build_email_sender() -> Sender:
    if not config.is_dev() and config.EMAIL_API_URL:
        return ApiEmailSender(config.EMAIL_API_URL, config.EMAIL_API_TOKEN)
    if config.smtp_enabled():
        return SmtpEmailSender()
    if config.testing_receiver_enabled():
        return TelegramTestingSender(
            config.TESTING_RECEIVER_TELEGRAM_BOT_TOKEN,
            config.TESTING_RECEIVER_TELEGRAM_CHAT_ID,
            from_address=config.EMAIL_FROM_ADDRESS,
        )
    logger.warning("No email transport configured, verification emails will only be logged")
    return ConsoleSender("email")
