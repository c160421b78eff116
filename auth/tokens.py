"""
auth/tokens.py -- Session token issuing and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry the account id, email, role, issue time, and expiry. The
       default validity window is 7 days. Tokens are never revoked; they
       simply expire.

  No database re-check: authenticate() trusts the signed claims. The role or
       email in a token may therefore lag behind the profile store until the
       user logs in again.

  Explicit construction: SessionIssuer receives its secret from the caller
       (api/main.py builds it from Settings in the lifespan). Nothing in this
       module reads configuration at import time, so tests construct issuers
       with known secrets and short expiries.

Layer rule: no imports from api/ or community/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import InvalidTokenError, UnauthenticatedError
from auth.models import TokenClaims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("transconnect.auth")

DEFAULT_EXPIRE_SECONDS = 7 * 24 * 3600
_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("id", "email", "role")


class SessionIssuer:
    """Mints and verifies bearer session tokens.

    Usage:
        issuer = SessionIssuer(settings.secret_key, settings.token_expire_seconds)
        token = issuer.issue(TokenClaims(id=uid, email=email, role="user"))
        claims = issuer.authenticate(token)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        algorithm: str = _ALGORITHM,
    ) -> None:
        if not secret_key:
            raise RuntimeError("Session signing secret is not configured.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(settings.secret_key, settings.token_expire_seconds)

    def issue(self, claims: TokenClaims, expire_seconds: int = 0) -> str:
        """Encode a signed token for the given identity claims.

        expire_seconds overrides the issuer default when positive. A negative
        value produces an already-expired token, which tests use to exercise
        the expiry path.
        """
        duration = expire_seconds if expire_seconds != 0 else self.expire_seconds
        now = datetime.now(timezone.utc)
        payload = {
            "sub": claims.id,
            "id": claims.id,
            "email": claims.email,
            "role": claims.role,
            "iat": now,
            "exp": now + timedelta(seconds=duration),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def authenticate(self, token: str | None) -> TokenClaims:
        """Verify signature and expiry and return the embedded claims.

        Raises UnauthenticatedError when no token is supplied and
        InvalidTokenError on any verification failure.
        """
        if not token or not token.strip():
            raise UnauthenticatedError()
        try:
            payload = jwt.decode(token.strip(), self._secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise InvalidTokenError() from exc
        if any(not payload.get(name) for name in _REQUIRED_CLAIMS):
            raise InvalidTokenError()
        return TokenClaims(id=str(payload["id"]), email=payload["email"], role=payload["role"])
