"""SMS service for phone verification codes."""

from __future__ import annotations

import logging

from app import config
from app.services.delivery import ConsoleSender, TelegramTestingSender, post_json
from app.verification.flow import OutgoingMessage, Sender

logger = logging.getLogger(__name__)


def compose_verification_sms(code: str) -> OutgoingMessage:
    minutes = config.PHONE_CODE_MAX_AGE_SECONDS // 60
    return OutgoingMessage(
        subject=None,
        body=f"Your {config.EMAIL_FROM_NAME} verification code is {code}. It expires in {minutes} minutes.",
    )


class ApiSmsSender:
    def __init__(self, url: str, token: str) -> None:
        self._url = url
        self._token = token

    async def send(self, destination: str, message: OutgoingMessage) -> None:
        await post_json(
            self._url,
            {"to": destination, "text": message.body},
            token=self._token,
        )
        logger.info("Verification SMS sent to %s", destination)


def build_sms_sender() -> Sender:
    if not config.is_dev() and config.SMS_API_URL:
        return ApiSmsSender(config.SMS_API_URL, config.SMS_API_TOKEN)
    if config.testing_receiver_enabled():
        return TelegramTestingSender(
            config.TESTING_RECEIVER_TELEGRAM_BOT_TOKEN,
            config.TESTING_RECEIVER_TELEGRAM_CHAT_ID,
        )
    logger.warning("No SMS transport configured, verification codes will only be logged")
    return ConsoleSender("SMS")
