"""
auth/identity.py -- Credential Verifier: boundary to the external identity provider.

Password checking, email confirmation state, and account lifecycle are owned
by a Supabase-style GoTrue REST API. This module is the only place that talks
to it. Everything above it depends on the CredentialVerifier protocol, so
tests substitute an in-process fake.

Error classification:
  The provider reports failures as JSON with an `error_code` (newer servers)
  or an `error` field (older servers) plus a human-readable message in
  `msg`, `error_description`, or `message`. classify_provider_error() maps the
  code through PROVIDER_ERROR_CODES first. Older servers report an unconfirmed
  email under a generic code (`invalid_grant`) or none at all, so when the
  code is missing or only says "bad credentials", a case-insensitive match on
  "email not confirmed" in the message decides. Anything else becomes the
  operation's default error carrying the provider's message verbatim.

Transport failures (requests.RequestException) are not classified here. They
propagate to the calling flow, which reports a generic 500.

Layer rule: no imports from api/ or community/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import requests

from auth.errors import (
    EmailNotConfirmedError,
    IdentityProviderError,
    InvalidCredentialsError,
    InvalidTokenError,
    ServiceError,
)
from auth.models import SignInOutcome, SignUpOutcome

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("transconnect.identity")

PROVIDER_ERROR_CODES: dict[str, type[ServiceError]] = {
    "email_not_confirmed": EmailNotConfirmedError,
    "invalid_credentials": InvalidCredentialsError,
    "invalid_grant": InvalidCredentialsError,
    "user_already_exists": IdentityProviderError,
    "email_exists": IdentityProviderError,
    "weak_password": IdentityProviderError,
    "same_password": IdentityProviderError,
    "email_address_invalid": IdentityProviderError,
    "signup_disabled": IdentityProviderError,
    "bad_jwt": InvalidTokenError,
    "session_not_found": InvalidTokenError,
    "session_expired": InvalidTokenError,
}

_LEGACY_UNCONFIRMED_MARKER = "email not confirmed"

# Classes whose codes are too generic to rule out an unconfirmed email.
_UNCONFIRMED_AMBIGUOUS = (None, InvalidCredentialsError)


class CredentialVerifier(Protocol):
    """Contract between the auth flows and the identity provider."""

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpOutcome: ...

    def sign_in_with_password(self, email: str, password: str) -> SignInOutcome: ...

    def send_password_reset(self, email: str, redirect_to: str | None = None) -> None: ...

    def update_password(self, access_token: str, password: str) -> None: ...


def classify_provider_error(
    payload: dict[str, Any],
    default: type[ServiceError],
) -> ServiceError:
    """Map a provider error payload to the service error taxonomy.

    EmailNotConfirmedError keeps its own user-facing message; every other
    class carries the provider's message so the client sees the real reason
    (duplicate email, weak password, and so on).
    """
    code = str(payload.get("error_code") or payload.get("error") or "").lower()
    message = str(
        payload.get("msg") or payload.get("error_description") or payload.get("message") or default.message
    )

    error_class = PROVIDER_ERROR_CODES.get(code)
    if error_class in _UNCONFIRMED_AMBIGUOUS and _LEGACY_UNCONFIRMED_MARKER in message.lower():
        error_class = EmailNotConfirmedError
    if error_class is None:
        error_class = default

    if error_class is EmailNotConfirmedError:
        return EmailNotConfirmedError()
    return error_class(message)


class SupabaseAuthClient:
    """GoTrue REST client implementing CredentialVerifier.

    Usage:
        client = SupabaseAuthClient.from_settings(get_settings())
        outcome = client.sign_up("a@x.com", "longpass1", {"chosen_name": "Ari"})
        client.close()
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # One session per client for connection pooling. max_redirects=3 keeps
        # a misconfigured URL from bouncing credentials through a long chain.
        self._session = session or requests.Session()
        self._session.max_redirects = 3
        self._session.headers.update(
            {
                "apikey": anon_key,
                "Authorization": f"Bearer {anon_key}",
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthClient":
        """Build a client from Settings. Missing URL or anon key is fatal."""
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise RuntimeError("Missing SUPABASE_URL or SUPABASE_ANON_KEY in environment variables.")
        return cls(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.provider_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # CredentialVerifier
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpOutcome:
        """Create an account. Provider rejections raise IdentityProviderError.

        Servers with email confirmation enabled answer with the bare user
        object and no session; autoconfirm servers answer with a session that
        wraps the user.
        """
        body = self._request(
            "POST",
            "/auth/v1/signup",
            {"email": email, "password": password, "data": metadata},
            default_error=IdentityProviderError,
        )
        user = body.get("user") or body
        account_id = user.get("id")
        if not account_id:
            raise IdentityProviderError("User creation failed.")
        has_session = bool(body.get("access_token"))
        logger.info("Account created at identity provider (session=%s)", has_session)
        return SignUpOutcome(account_id=str(account_id), has_active_session=has_session)

    def sign_in_with_password(self, email: str, password: str) -> SignInOutcome:
        """Verify credentials. Raises EmailNotConfirmedError or InvalidCredentialsError."""
        body = self._request(
            "POST",
            "/auth/v1/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
            default_error=InvalidCredentialsError,
        )
        user = body.get("user") or {}
        if not user.get("id"):
            raise InvalidCredentialsError()
        return SignInOutcome(
            account_id=str(user["id"]),
            email=user.get("email") or email,
            metadata=user.get("user_metadata") or {},
        )

    def send_password_reset(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._request("POST", "/auth/v1/recover", {"email": email}, IdentityProviderError, params=params)

    def update_password(self, access_token: str, password: str) -> None:
        """Set a new password for the account behind a recovery session.

        access_token is the short-lived session token carried by the reset
        link, sent as the bearer credential instead of the anon key. A
        rejected or expired token raises InvalidTokenError.
        """
        self._request(
            "PUT",
            "/auth/v1/user",
            {"password": password},
            IdentityProviderError,
            headers={"Authorization": f"Bearer {access_token}"},
            unauthorized_error=InvalidTokenError,
        )
        logger.info("Password updated through recovery session")

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any],
        default_error: type[ServiceError],
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        unauthorized_error: type[ServiceError] | None = None,
    ) -> dict[str, Any]:
        """Send one JSON request and return the decoded body.

        Error responses are classified with classify_provider_error().
        unauthorized_error, when given, replaces default_error for 401/403
        responses the code table does not recognize.
        """
        resp = self._session.request(
            method,
            f"{self.base_url}{path}",
            json=payload,
            params=params,
            headers=headers,
            timeout=self.timeout,
        )
        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400:
            fallback = default_error
            if unauthorized_error is not None and resp.status_code in (401, 403):
                fallback = unauthorized_error
            error = classify_provider_error(body, fallback)
            logger.info("Identity provider rejected %s: %s (%d)", path, error.message, resp.status_code)
            raise error
        return body
