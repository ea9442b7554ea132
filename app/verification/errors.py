"""
Failures raised by the verification core.

Every error is terminal for the request that hit it; recovering from
anything other than ``RateLimited`` requires sending a fresh code.
"""

from __future__ import annotations

from datetime import datetime


class VerificationError(Exception):
    """Base class for all verification outcomes that are not success."""

    code = "verification_error"


class RateLimited(VerificationError):
    code = "rate_limited"

    def __init__(self, retry_at: datetime) -> None:
        super().__init__(f"Too many attempts, retry at {retry_at.isoformat()}")
        self.retry_at = retry_at


class CodeNotFound(VerificationError):
    code = "invalid_code"


class CodeExpired(VerificationError):
    code = "code_expired"


class CodeAlreadyUsed(VerificationError):
    code = "code_used"


class InvalidCode(VerificationError):
    code = "invalid_code"


class DeliveryFailed(VerificationError):
    """The email / SMS provider rejected or never acknowledged the message."""

    code = "delivery_failed"


class StoreUnavailable(VerificationError):
    """The database could not be opened, locked or committed."""

    code = "store_unavailable"
