"""Who a code or an attempt belongs to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AttemptKind(str, Enum):
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    PRESENT_EMAIL = "present_email"
    PRESENT_SMS = "present_sms"


@dataclass(frozen=True)
class EmailSubject:
    email: str

    @property
    def key(self) -> str:
        return f"email:{self.email}"


@dataclass(frozen=True)
class PhoneSubject:
    """
    A user verifying a phone number.

    Limits are counted across both dimensions: attempts by the same user
    with any phone, and attempts against the same phone by any user.
    """

    user_id: int
    phone: str | None = None

    @property
    def key(self) -> str:
        return f"phone:{self.user_id}"


Subject = EmailSubject | PhoneSubject
