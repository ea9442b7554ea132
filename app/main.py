"""FastAPI application for the sports-community backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import DB_BUSY_TIMEOUT, DB_PATH, DB_POOL_SIZE, SESSION_SWEEP_INTERVAL
from app.db import Database, utcnow
from app.dependencies import EMAIL_SESSION_MAX_AGE, USER_SESSION_MAX_AGE
from app.models import Error
from app.rate_limit import limiter
from app.routers import auth, health
from app.services.background import SessionSweeper
from app.services.email import build_email_sender
from app.services.sms import build_sms_sender
from app.sessions import EMAIL_SESSION, USER_SESSION, SessionStore
from app.verification.errors import (
    CodeAlreadyUsed,
    CodeExpired,
    CodeNotFound,
    DeliveryFailed,
    InvalidCode,
    RateLimited,
    StoreUnavailable,
    VerificationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[VerificationError], int] = {
    RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
    CodeNotFound: status.HTTP_403_FORBIDDEN,
    InvalidCode: status.HTTP_403_FORBIDDEN,
    CodeExpired: status.HTTP_403_FORBIDDEN,
    CodeAlreadyUsed: status.HTTP_403_FORBIDDEN,
    DeliveryFailed: status.HTTP_502_BAD_GATEWAY,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database(DB_PATH, pool_size=DB_POOL_SIZE, busy_timeout=DB_BUSY_TIMEOUT)
    await database.connect()

    sessions = SessionStore(database)
    sweeper = SessionSweeper(
        sessions,
        {EMAIL_SESSION: EMAIL_SESSION_MAX_AGE, USER_SESSION: USER_SESSION_MAX_AGE},
        interval=SESSION_SWEEP_INTERVAL,
    )

    app.state.db = database
    app.state.sessions = sessions
    app.state.email_sender = build_email_sender()
    app.state.sms_sender = build_sms_sender()

    await sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()
        await database.close()


app = FastAPI(
    title="Sports Community API",
    description="Account registration, sign-in and email / phone verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    body = Error(error=exc.code, message=str(exc))
    headers = None

    if isinstance(exc, RateLimited):
        body.retry_at = exc.retry_at
        wait = max(0, int((exc.retry_at - utcnow()).total_seconds()) + 1)
        headers = {"Retry-After": str(wait)}
    elif isinstance(exc, (DeliveryFailed, StoreUnavailable)):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)

    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


app.include_router(health.router)
app.include_router(auth.router)
