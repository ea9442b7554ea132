"""HTTP helpers that walk a TestClient through the account flows."""

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.mocks.services import RecordingSender


def register(client: TestClient, outbox: RecordingSender, email: str, password: str) -> None:
    """Run the full email registration flow over HTTP."""
    resp = client.post("/api/auth/flow/email", json={"email": email})
    assert resp.status_code == 200, resp.text
    resp = client.post(
        "/api/auth/flow/email/session",
        json={"email": email, "token": outbox.last_token()},
    )
    assert resp.status_code == 200, resp.text
    resp = client.post("/api/auth/flow/email/reset-password", json={"password": password})
    assert resp.status_code == 200, resp.text


def sign_in(client: TestClient, email: str, password: str) -> dict:
    resp = client.post("/api/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()
