import logging
from datetime import timedelta
from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, Response, status

from app.config import EMAIL_SESSION_MAX_AGE_SECONDS, ENVIRONMENT, SESSION_EXPIRY_DAYS
from app.db import Database
from app.sessions import EMAIL_SESSION, USER_SESSION, Session, SessionStore
from app.verification.channels import EMAIL_CHANNEL, PHONE_CHANNEL
from app.verification.flow import Sender, VerificationFlow

logger = logging.getLogger(__name__)

USER_SESSION_COOKIE = "session"
EMAIL_SESSION_COOKIE = "email_session"

USER_SESSION_MAX_AGE = timedelta(days=SESSION_EXPIRY_DAYS)
EMAIL_SESSION_MAX_AGE = timedelta(seconds=EMAIL_SESSION_MAX_AGE_SECONDS)


# ── Store / services ───────────────────────────────────────────────────────


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_email_sender(request: Request) -> Sender:
    return request.app.state.email_sender


def get_sms_sender(request: Request) -> Sender:
    return request.app.state.sms_sender


DatabaseDep = Annotated[Database, Depends(get_database)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]


def get_email_flow(
    db: DatabaseDep,
    sender: Annotated[Sender, Depends(get_email_sender)],
) -> VerificationFlow:
    return VerificationFlow(db, EMAIL_CHANNEL, sender)


def get_phone_flow(
    db: DatabaseDep,
    sender: Annotated[Sender, Depends(get_sms_sender)],
) -> VerificationFlow:
    return VerificationFlow(db, PHONE_CHANNEL, sender)


EmailFlow = Annotated[VerificationFlow, Depends(get_email_flow)]
PhoneFlow = Annotated[VerificationFlow, Depends(get_phone_flow)]


# ── Session cookies ────────────────────────────────────────────────────────


def set_session_cookie(response: Response, name: str, session: Session, max_age: timedelta) -> None:
    response.set_cookie(
        key=name,
        value=session.id,
        httponly=True,
        samesite="lax",
        secure=ENVIRONMENT == "production",
        max_age=int(max_age.total_seconds()),
    )


async def get_current_user(
    sessions: SessionStoreDep,
    session: Annotated[str | None, Cookie()] = None,
) -> Session:
    user_session = await sessions.get(session, USER_SESSION, USER_SESSION_MAX_AGE)
    if user_session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please sign in.",
        )
    return user_session


async def get_email_session(
    sessions: SessionStoreDep,
    email_session: Annotated[str | None, Cookie()] = None,
) -> Session:
    verified = await sessions.get(email_session, EMAIL_SESSION, EMAIL_SESSION_MAX_AGE)
    if verified is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email verification session missing or expired.",
        )
    return verified


CurrentUser = Annotated[Session, Depends(get_current_user)]
CurrentEmailSession = Annotated[Session, Depends(get_email_session)]
