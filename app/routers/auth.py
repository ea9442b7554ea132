"""
Authentication endpoints.

Email flow (registration and password reset share it):

1.  ``POST /flow/email`` sends a one-time link to the address.
2.  ``POST /flow/email/session`` exchanges the token from the link for a
    short-lived email session.
3.  ``POST /flow/email/reset-password`` sets the password, creating the
    account if the address is new.

Phone flow (signed-in users only): ``POST /flow/phone`` texts a 6-digit
code, ``POST /flow/phone/verify`` attaches the phone to the account.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from app import db
from app.dependencies import (
    EMAIL_SESSION_COOKIE,
    EMAIL_SESSION_MAX_AGE,
    USER_SESSION_COOKIE,
    USER_SESSION_MAX_AGE,
    CurrentEmailSession,
    CurrentUser,
    DatabaseDep,
    EmailFlow,
    PhoneFlow,
    SessionStoreDep,
    set_session_cookie,
)
from app.models import (
    CodeSentResponse,
    CreateEmailSessionRequest,
    EmailSessionResponse,
    LocateAccountRequest,
    LocateAccountResponse,
    MessageResponse,
    ResetPasswordRequest,
    SendPhoneCodeRequest,
    SendVerificationEmailRequest,
    SignInRequest,
    UserStatus,
    VerifyPhoneRequest,
)
from app.rate_limit import AUTH, STRICT, limiter
from app.services.email import (
    REGISTER_FLOW,
    RESET_PASSWORD_FLOW,
    compose_verification_email,
)
from app.services.passwords import hash_password, verify_password
from app.services.sms import compose_verification_sms
from app.sessions import EMAIL_SESSION, USER_SESSION, Session
from app.verification.codes import CodeRecord
from app.verification.subjects import EmailSubject, PhoneSubject

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user_status(user: db.User) -> UserStatus:
    return UserStatus(id=user.id, email=user.email, phone=user.phone, profile_completed=False)


@router.post(
    "/locate-account",
    response_model=LocateAccountResponse,
    operation_id="locateAccount",
    summary="Check whether an email address already has an account",
)
@limiter.limit(AUTH)
async def locate_account(request: Request, body: LocateAccountRequest, database: DatabaseDep) -> LocateAccountResponse:
    async with database.connection() as conn:
        registered = await db.is_email_registered(conn, body.email)
    return LocateAccountResponse(email_registered=registered)


# ── Email flow ─────────────────────────────────────────────────────────────


@router.post(
    "/flow/email",
    response_model=CodeSentResponse,
    operation_id="sendVerificationEmail",
    summary="Send a registration or password-reset link",
)
@limiter.limit(STRICT)
async def send_verification_email(
    request: Request,
    body: SendVerificationEmailRequest,
    flow: EmailFlow,
) -> CodeSentResponse:
    email = body.email

    async def compose(conn, token: str):
        registered = await db.is_email_registered(conn, email)
        return compose_verification_email(email, token, is_reset_password=registered)

    record = await flow.request_send(EmailSubject(email), email, compose)
    logger.info("Verification email issued for %s", email)
    return CodeSentResponse(
        message=f"Verification email sent to {email}",
        expires_at=record.expires_at(flow.channel.max_age),
    )


@router.post(
    "/flow/email/session",
    response_model=EmailSessionResponse,
    operation_id="createEmailSession",
    summary="Exchange a verification token for an email session",
)
@limiter.limit(AUTH)
async def create_email_session(
    request: Request,
    body: CreateEmailSessionRequest,
    response: Response,
    flow: EmailFlow,
    sessions: SessionStoreDep,
) -> EmailSessionResponse:
    email = body.email
    email_session: Session | None = None

    # The session is written in the same transaction that consumes the token.
    async def on_verified(conn, record: CodeRecord) -> None:
        nonlocal email_session
        registered = await db.is_email_registered(conn, email)
        verified_flow = RESET_PASSWORD_FLOW if registered else REGISTER_FLOW
        email_session = await sessions.create(
            EMAIL_SESSION, {"email": email, "flow": verified_flow}, conn=conn
        )

    await flow.present_code(EmailSubject(email), body.token, on_verified=on_verified)

    verified_flow = email_session.data["flow"]
    set_session_cookie(response, EMAIL_SESSION_COOKIE, email_session, EMAIL_SESSION_MAX_AGE)
    return EmailSessionResponse(email=email, flow=verified_flow)


@router.get(
    "/flow/email/session",
    response_model=EmailSessionResponse,
    operation_id="getEmailSession",
    summary="Get the verified email session",
)
async def get_email_session(email_session: CurrentEmailSession) -> EmailSessionResponse:
    return EmailSessionResponse(
        email=email_session.data["email"],
        flow=email_session.data["flow"],
    )


@router.post(
    "/flow/email/reset-password",
    response_model=MessageResponse,
    operation_id="resetPassword",
    summary="Set the password for the verified email, creating the account if needed",
)
async def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    email_session: CurrentEmailSession,
    database: DatabaseDep,
    sessions: SessionStoreDep,
) -> MessageResponse:
    email: str = email_session.data["email"]
    password_hash = await hash_password(body.password)

    async with database.transaction() as conn:
        if await db.is_email_registered(conn, email):
            await db.set_user_password(conn, email, password_hash)
            message = "Password updated"
        else:
            await db.add_user(conn, email, password_hash)
            message = "Account created"

    await sessions.delete(email_session.id)
    response.delete_cookie(EMAIL_SESSION_COOKIE)
    logger.info("%s for %s", message, email)
    return MessageResponse(message=message)


# ── Sign in / out ──────────────────────────────────────────────────────────


@router.post(
    "/signin",
    response_model=UserStatus,
    operation_id="signIn",
    summary="Sign in with email and password",
)
@limiter.limit(AUTH)
async def sign_in(
    request: Request,
    body: SignInRequest,
    response: Response,
    database: DatabaseDep,
    sessions: SessionStoreDep,
) -> UserStatus:
    async with database.connection() as conn:
        user = await db.get_user_by_email(conn, body.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="user_not_found")
    if not await verify_password(user.password, body.password):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="invalid_credentials")

    user_session = await sessions.create(USER_SESSION, {"user_id": user.id})
    set_session_cookie(response, USER_SESSION_COOKIE, user_session, USER_SESSION_MAX_AGE)
    return _user_status(user)


@router.post(
    "/signout",
    response_model=MessageResponse,
    operation_id="signOut",
    summary="End the current session",
)
async def sign_out(request: Request, response: Response, sessions: SessionStoreDep) -> MessageResponse:
    await sessions.delete(request.cookies.get(USER_SESSION_COOKIE))
    await sessions.delete(request.cookies.get(EMAIL_SESSION_COOKIE))
    response.delete_cookie(USER_SESSION_COOKIE)
    response.delete_cookie(EMAIL_SESSION_COOKIE)
    return MessageResponse(message="Signed out")


@router.get(
    "/status",
    response_model=UserStatus,
    operation_id="getStatus",
    summary="Get the signed-in user's account",
)
async def get_status(current_user: CurrentUser, database: DatabaseDep) -> UserStatus:
    async with database.connection() as conn:
        user = await db.get_user(conn, current_user.data["user_id"])
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account no longer exists.")
    return _user_status(user)


# ── Phone flow ─────────────────────────────────────────────────────────────


@router.post(
    "/flow/phone",
    response_model=CodeSentResponse,
    operation_id="sendPhoneCode",
    summary="Text a verification code to a phone number",
)
@limiter.limit(STRICT)
async def send_phone_code(
    request: Request,
    body: SendPhoneCodeRequest,
    current_user: CurrentUser,
    flow: PhoneFlow,
) -> CodeSentResponse:
    subject = PhoneSubject(user_id=current_user.data["user_id"], phone=body.phone)

    async def compose(conn, code: str):
        return compose_verification_sms(code)

    record = await flow.request_send(subject, body.phone, compose, aux=body.phone)
    return CodeSentResponse(
        message=f"Verification code sent to {body.phone}",
        expires_at=record.expires_at(flow.channel.max_age),
    )


@router.post(
    "/flow/phone/verify",
    response_model=UserStatus,
    operation_id="verifyPhone",
    summary="Confirm a phone number with the texted code",
)
@limiter.limit(AUTH)
async def verify_phone(
    request: Request,
    body: VerifyPhoneRequest,
    current_user: CurrentUser,
    flow: PhoneFlow,
    database: DatabaseDep,
) -> UserStatus:
    user_id = current_user.data["user_id"]

    async def on_verified(conn, record: CodeRecord) -> None:
        await db.set_user_phone(conn, user_id, record.aux)

    await flow.present_code(
        PhoneSubject(user_id=user_id, phone=body.phone),
        body.code,
        aux=body.phone,
        on_verified=on_verified,
    )
    logger.info("Phone verified for user %s", user_id)

    async with database.connection() as conn:
        user = await db.get_user(conn, user_id)
    return _user_status(user)
