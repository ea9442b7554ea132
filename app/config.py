"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


def is_dev() -> bool:
    return ENVIRONMENT != "production"


# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# ── Delivery ─────────────────────────────────────────────────────────────

# Seconds an email or SMS provider call may take before it counts as failed.
DELIVERY_TIMEOUT: float = float(os.getenv("DELIVERY_TIMEOUT", "15"))

# ── Database ─────────────────────────────────────────────────────────────

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "sports_community.db"))
DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "4"))
# Seconds a connection waits for SQLite's write lock before giving up.
# A send holds the lock through delivery and every pooled connection may be
# one such send, so a waiter must outlast all of them back to back.
DB_BUSY_TIMEOUT: float = float(
    os.getenv("DB_BUSY_TIMEOUT", str(DELIVERY_TIMEOUT * DB_POOL_SIZE + 5))
)

# ── Sessions ──────────────────────────────────────────────────────────────

SESSION_EXPIRY_DAYS: int = int(os.getenv("SESSION_EXPIRY_DAYS", "7"))
EMAIL_SESSION_MAX_AGE_SECONDS: int = int(os.getenv("EMAIL_SESSION_MAX_AGE_SECONDS", "3600"))

# How often expired sessions are purged (seconds).
SESSION_SWEEP_INTERVAL: float = float(os.getenv("SESSION_SWEEP_INTERVAL", "600"))

# ── Verification ──────────────────────────────────────────────────────────

EMAIL_TOKEN_MAX_AGE_SECONDS: int = int(os.getenv("EMAIL_TOKEN_MAX_AGE_SECONDS", "1800"))
PHONE_CODE_MAX_AGE_SECONDS: int = int(os.getenv("PHONE_CODE_MAX_AGE_SECONDS", "600"))

# ── Passwords ────────────────────────────────────────────────────────────

BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# ── Email ─────────────────────────────────────────────────────────────────

EMAIL_FROM_ADDRESS: str = os.getenv("EMAIL_FROM_ADDRESS", "noreply@sports-community.local")
EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "Sports Community")
EMAIL_REGISTRATION_SUBJECT: str = os.getenv(
    "EMAIL_REGISTRATION_SUBJECT", "Complete your registration"
)
EMAIL_RESET_PASSWORD_SUBJECT: str = os.getenv(
    "EMAIL_RESET_PASSWORD_SUBJECT", "Reset your password"
)
EMAIL_VERIFICATION_URL_TEMPLATE: str = os.getenv(
    "EMAIL_VERIFICATION_URL_TEMPLATE",
    "http://localhost:3000/verify?email={email}&token={token}&flow={flow}",
)

# Transactional email HTTP API (preferred in production when set)
EMAIL_API_URL: str = os.getenv("EMAIL_API_URL", "")
EMAIL_API_TOKEN: str = os.getenv("EMAIL_API_TOKEN", "")

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default): send if credentials are configured
      • "true":  always send (will fail if credentials are missing)
      • "false": never send
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── SMS ───────────────────────────────────────────────────────────────────

SMS_API_URL: str = os.getenv("SMS_API_URL", "")
SMS_API_TOKEN: str = os.getenv("SMS_API_TOKEN", "")

# ── Testing receiver ──────────────────────────────────────────────────────

# In development, verification messages can be forwarded to a Telegram chat
# instead of real inboxes / phones.
TESTING_RECEIVER_TELEGRAM_BOT_TOKEN: str = os.getenv("TESTING_RECEIVER_TELEGRAM_BOT_TOKEN", "")
TESTING_RECEIVER_TELEGRAM_CHAT_ID: str = os.getenv("TESTING_RECEIVER_TELEGRAM_CHAT_ID", "")


def testing_receiver_enabled() -> bool:
    return is_dev() and bool(
        TESTING_RECEIVER_TELEGRAM_BOT_TOKEN and TESTING_RECEIVER_TELEGRAM_CHAT_ID
    )
