"""
tests/conftest.py -- Shared test fixtures for TransConnect tests.

This module provides:
  - FakeVerifier: in-process stand-in for the identity provider
  - _make_test_store(): isolated shared-memory SQLite community store
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: Harness(client, verifier, store, issuer) for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

Environment must be set before any api/ import: get_settings() is read at
import time by api.limiter and api.main.
"""

from __future__ import annotations

import os
import random
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before importing the app so Settings validates and rate
# limits stay off for the whole session.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-transconnect-suite-0123456789")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.errors import IdentityProviderError, InvalidCredentialsError, ServiceError
from auth.identity import classify_provider_error
from auth.models import SignInOutcome, SignUpOutcome, TokenClaims
from auth.provisioning import AuthService, ProfileProvisioner
from auth.tokens import SessionIssuer
from community.store import CommunityStore
from core.config import get_settings

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"


# ---------------------------------------------------------------------------
# Identity provider fake
# ---------------------------------------------------------------------------


class FakeVerifier:
    """Identity provider double that keeps accounts in a dict.

    require_confirmation=True mimics a provider with email confirmation on:
    sign_up returns no session and sign-in reports "Email not confirmed"
    until confirm() is called. open_recovery_session() stands in for the
    token a reset link carries. Rejections go through classify_provider_error
    so the real classification table is exercised.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.reset_requests: list[tuple[str, str | None]] = []
        self.recovery_sessions: dict[str, str] = {}
        self.require_confirmation = False
        self.sign_up_error: Exception | None = None

    def sign_up(self, email, password, metadata) -> SignUpOutcome:
        self.calls.append(("sign_up", email))
        if self.sign_up_error is not None:
            raise self.sign_up_error
        if email in self.accounts:
            raise classify_provider_error({"msg": "User already registered"}, IdentityProviderError)
        account_id = str(uuid.uuid4())
        self.accounts[email] = {
            "id": account_id,
            "password": password,
            "metadata": dict(metadata),
            "confirmed": not self.require_confirmation,
        }
        return SignUpOutcome(account_id=account_id, has_active_session=not self.require_confirmation)

    def sign_in_with_password(self, email, password) -> SignInOutcome:
        self.calls.append(("sign_in", email))
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise classify_provider_error(
                {"error": "invalid_grant", "error_description": "Invalid login credentials"},
                InvalidCredentialsError,
            )
        if not account["confirmed"]:
            # Shape older GoTrue servers use: a generic grant error whose
            # description is the only sign of the unconfirmed address.
            raise classify_provider_error(
                {"error": "invalid_grant", "error_description": "Email not confirmed"},
                InvalidCredentialsError,
            )
        return SignInOutcome(account_id=account["id"], email=email, metadata=dict(account["metadata"]))

    def send_password_reset(self, email, redirect_to=None) -> None:
        self.calls.append(("recover", email))
        if email not in self.accounts:
            raise ServiceError("User not found")
        self.reset_requests.append((email, redirect_to))

    def update_password(self, access_token, password) -> None:
        self.calls.append(("update_password", access_token))
        email = self.recovery_sessions.pop(access_token, None)
        if email is None:
            raise classify_provider_error(
                {"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT: token is expired"},
                IdentityProviderError,
            )
        self.accounts[email]["password"] = password

    def open_recovery_session(self, email: str) -> str:
        """Mimic following a reset link: return a one-shot recovery token."""
        token = f"recovery-{uuid.uuid4().hex}"
        self.recovery_sessions[token] = email
        return token

    def confirm(self, email: str) -> None:
        self.accounts[email]["confirmed"] = True

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Store and app helpers
# ---------------------------------------------------------------------------


def _make_test_store() -> CommunityStore:
    """Create an isolated named shared-memory SQLite store.

    A fresh uuid per call keeps tests from seeing each other's rows.
    """
    return CommunityStore(f"sqlite:///file:test_community_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store, issuer, verifier, service):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.store = store
        app.state.session_issuer = issuer
        app.state.identity = verifier
        app.state.auth_service = service
        yield

    return test_lifespan


@dataclass
class Harness:
    client: TestClient
    verifier: FakeVerifier
    store: CommunityStore
    issuer: SessionIssuer
    service: AuthService

    def headers_for(self, account_id: str, email: str, role: str = "user") -> dict[str, str]:
        token = self.issuer.issue(TokenClaims(id=account_id, email=email, role=role))
        return {"Authorization": f"Bearer {token}"}

    def signup(self, **fields) -> dict:
        """POST a valid signup, overriding any field, and return the JSON body."""
        body = {"email": "ari@example.com", "password": "longpass1", "chosenName": "Ari", "role": "user"}
        body.update(fields)
        resp = self.client.post("/api/auth/signup", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[CommunityStore, None, None]:
    s = CommunityStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def issuer() -> SessionIssuer:
    return SessionIssuer(TEST_SECRET, expire_seconds=3600)


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def api_client() -> Generator[Harness, None, None]:
    """Yield a Harness around a TestClient wired to isolated test collaborators.

    The TestClient uses the real FastAPI app with a patched lifespan, so tests
    hit real route handlers, dependencies, and exception handlers.
    """
    store = _make_test_store()
    verifier = FakeVerifier()
    issuer = SessionIssuer(TEST_SECRET)
    service = AuthService(
        verifier=verifier,
        issuer=issuer,
        store=store,
        provisioner=ProfileProvisioner(store, rng=random.Random(7)),
    )

    app.router.lifespan_context = _patch_lifespan(store, issuer, verifier, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield Harness(client=client, verifier=verifier, store=store, issuer=issuer, service=service)

    store.close()
