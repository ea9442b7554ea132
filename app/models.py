"""Pydantic request / response models for the authentication API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

PHONE_PATTERN = r"^\+?[0-9]{8,15}$"


# ── Requests ──────────────────────────────────────────────────────────────


class LocateAccountRequest(BaseModel):
    email: EmailStr = Field(..., description="Email address to look up")


class SendVerificationEmailRequest(BaseModel):
    email: EmailStr = Field(..., description="Address to send the verification link to")


class CreateEmailSessionRequest(BaseModel):
    email: EmailStr = Field(..., description="Address the link was sent to")
    token: str = Field(..., min_length=1, max_length=128, description="Token from the verification link")


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6, description="New password (at least 6 characters)")

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return v


class SignInRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Account password")


class SendPhoneCodeRequest(BaseModel):
    phone: str = Field(..., pattern=PHONE_PATTERN, description="Phone number to verify")


class VerifyPhoneRequest(BaseModel):
    phone: str = Field(..., pattern=PHONE_PATTERN, description="Phone number the code was sent to")
    code: str = Field(..., pattern=r"^[0-9]{6}$", description="6-digit code from the SMS")


# ── Responses ─────────────────────────────────────────────────────────────


class MessageResponse(BaseModel):
    message: str


class LocateAccountResponse(BaseModel):
    email_registered: bool


class CodeSentResponse(BaseModel):
    message: str
    expires_at: datetime = Field(..., description="When the sent code stops being accepted")


class EmailSessionResponse(BaseModel):
    email: EmailStr
    flow: str = Field(..., description="'register' for new accounts, 'resetPassword' otherwise")


class UserStatus(BaseModel):
    id: int
    email: EmailStr
    phone: Optional[str] = None
    profile_completed: bool = False


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class Error(BaseModel):
    error: str
    message: str
    retry_at: Optional[datetime] = None
