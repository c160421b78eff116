"""Unit tests for auth/tokens.py -- SessionIssuer issue/authenticate.

Covers:
- Issued tokens decode back to exactly the embedded claims
- Missing token -> UnauthenticatedError; tampered/expired/foreign -> InvalidTokenError
- Default validity window is 7 days
- Constructing without a secret is a fatal configuration error
- from_settings takes a Settings object and honors its signing key and window
"""

import typing
from datetime import datetime, timezone

import pytest
from jose import jwt

from auth.errors import InvalidTokenError, UnauthenticatedError
from auth.models import TokenClaims
from auth.tokens import DEFAULT_EXPIRE_SECONDS, SessionIssuer
from core.config import Settings

_CLAIMS = TokenClaims(id="9f0c2a7e-1111-4c4c-9c9c-000000000001", email="kai@example.com", role="mentor")


class TestIssueAndAuthenticate:
    def test_round_trip_returns_embedded_claims(self, issuer):
        token = issuer.issue(_CLAIMS)
        assert issuer.authenticate(token) == _CLAIMS

    def test_surrounding_whitespace_is_ignored(self, issuer):
        token = issuer.issue(_CLAIMS)
        assert issuer.authenticate(f"  {token} ") == _CLAIMS

    def test_default_window_is_seven_days(self):
        issuer = SessionIssuer("x" * 40)
        payload = jwt.get_unverified_claims(issuer.issue(_CLAIMS))
        assert DEFAULT_EXPIRE_SECONDS == 7 * 24 * 3600
        assert payload["exp"] - payload["iat"] == DEFAULT_EXPIRE_SECONDS

    def test_subject_is_account_id(self, issuer):
        payload = jwt.get_unverified_claims(issuer.issue(_CLAIMS))
        assert payload["sub"] == _CLAIMS.id


class TestAuthenticateFailures:
    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token_is_unauthenticated(self, issuer, token):
        with pytest.raises(UnauthenticatedError) as excinfo:
            issuer.authenticate(token)
        assert not isinstance(excinfo.value, InvalidTokenError)
        assert excinfo.value.status_code == 401

    def test_garbage_token_is_invalid(self, issuer):
        with pytest.raises(InvalidTokenError, match="Invalid or expired token."):
            issuer.authenticate("not-a-jwt")

    def test_token_signed_with_other_secret_is_invalid(self, issuer):
        foreign = SessionIssuer("another-secret-entirely-0123456789abcdef").issue(_CLAIMS)
        with pytest.raises(InvalidTokenError):
            issuer.authenticate(foreign)

    def test_expired_token_is_invalid(self, issuer):
        expired = issuer.issue(_CLAIMS, expire_seconds=-60)
        with pytest.raises(InvalidTokenError):
            issuer.authenticate(expired)

    def test_token_missing_role_claim_is_invalid(self) -> None:
        """A correctly signed token without a role claim is still rejected."""
        secret = "role-less-secret-0123456789abcdefghij"
        issuer = SessionIssuer(secret)
        token = jwt.encode(
            {"id": _CLAIMS.id, "email": _CLAIMS.email, "exp": datetime.now(timezone.utc).timestamp() + 60},
            secret,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            issuer.authenticate(token)


def test_missing_secret_is_fatal():
    with pytest.raises(RuntimeError, match="secret"):
        SessionIssuer("")


def test_from_settings_reads_key_and_window():
    settings = Settings(_env_file=None, token_expire_seconds=120)
    issuer = SessionIssuer.from_settings(settings)

    assert issuer.expire_seconds == 120
    token = issuer.issue(_CLAIMS)
    assert jwt.decode(token, settings.secret_key, algorithms=["HS256"])["email"] == _CLAIMS.email


def test_from_settings_is_annotated_with_settings():
    hints = typing.get_type_hints(SessionIssuer.from_settings.__func__, localns={"Settings": Settings})
    assert hints["settings"] is Settings
    assert hints["return"] is SessionIssuer
