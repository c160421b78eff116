"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests move through a strictly linear chain:
  Unauthenticated -> Authenticated (claims) -> Authorized (role) -> Handled.
The first failing stage raises, and the route handler never runs.

get_current_claims() reads the Authorization: Bearer <token> header, verifies
it with the SessionIssuer on app.state, and attaches the claims to
request.state.claims for downstream handlers.

require_role(role) builds a dependency that runs after get_current_claims()
and rejects a mismatched role with 403.

Layer rule: no imports from community/ or core/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import ForbiddenError, UnauthenticatedError
from auth.models import TokenClaims
from auth.tokens import SessionIssuer


def bearer_token(request: Request) -> str | None:
    """Return the token from an `Authorization: Bearer <token>` header, or None."""
    auth_header = request.headers.get("Authorization", "")
    token = auth_header.removeprefix("Bearer ").strip()
    return token or None


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid session token. Raises 401 on a missing or invalid token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_current_claims)): ...
    """
    issuer: SessionIssuer = request.app.state.session_issuer
    claims = issuer.authenticate(bearer_token(request))
    request.state.claims = claims
    return claims


def require_role(role: str):
    """Build a dependency that requires the authenticated role to equal `role`.

    Raises 401 when no identity context is present and 403 on a mismatch.
    """

    def _check_role(request: Request, _claims: TokenClaims = Depends(get_current_claims)) -> TokenClaims:
        claims: TokenClaims | None = getattr(request.state, "claims", None)
        if claims is None:
            raise UnauthenticatedError("Authentication required.")
        if claims.role != role:
            raise ForbiddenError(f"Access denied. {role} role required.")
        return claims

    return _check_role
