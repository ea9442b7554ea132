"""Secrets, lifetimes and rate limits for the email and phone flows."""

from __future__ import annotations

import secrets
from datetime import timedelta

from app.config import EMAIL_TOKEN_MAX_AGE_SECONDS, PHONE_CODE_MAX_AGE_SECONDS
from app.verification.flow import Channel
from app.verification.rate_limiter import RateLimitPolicy, RateWindow
from app.verification.subjects import AttemptKind


def generate_email_token() -> str:
    """32 random bytes, URL-safe base64 (43 characters)."""
    return secrets.token_urlsafe(32)


def generate_phone_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


EMAIL_SEND_POLICY = RateLimitPolicy.of(
    RateWindow(max_attempts=10, duration=timedelta(hours=24)),
    RateWindow(max_attempts=5, duration=timedelta(minutes=5)),
)
PHONE_SEND_POLICY = RateLimitPolicy.of(
    RateWindow(max_attempts=10, duration=timedelta(hours=24)),
    RateWindow(max_attempts=1, duration=timedelta(minutes=3)),
)
PRESENT_POLICY = RateLimitPolicy.of(
    RateWindow(max_attempts=5, duration=timedelta(minutes=3)),
)


EMAIL_CHANNEL = Channel(
    name="email",
    send_kind=AttemptKind.SEND_EMAIL,
    present_kind=AttemptKind.PRESENT_EMAIL,
    send_policy=EMAIL_SEND_POLICY,
    present_policy=PRESENT_POLICY,
    max_age=timedelta(seconds=EMAIL_TOKEN_MAX_AGE_SECONDS),
    generate_secret=generate_email_token,
)

PHONE_CHANNEL = Channel(
    name="phone",
    send_kind=AttemptKind.SEND_SMS,
    present_kind=AttemptKind.PRESENT_SMS,
    send_policy=PHONE_SEND_POLICY,
    present_policy=PRESENT_POLICY,
    max_age=timedelta(seconds=PHONE_CODE_MAX_AGE_SECONDS),
    generate_secret=generate_phone_code,
    match_aux=True,
)
