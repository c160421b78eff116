"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in community/models.py -- dataclasses own domain shape; services and routes
do the work.

Layer rule: no imports from api/, core/, or community/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims embedded in a session token.

    Returned verbatim by SessionIssuer.authenticate(). There is no database
    re-check, so role and email may be stale relative to the profile store.
    """

    id: str
    email: str
    role: str


@dataclass
class SignUpOutcome:
    """Result of creating an account at the identity provider.

    has_active_session is False when the provider requires email confirmation
    before the first sign-in.
    """

    account_id: str
    has_active_session: bool


@dataclass
class SignInOutcome:
    account_id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SignupForm:
    """Signup form fields as submitted by the client.

    languages is kept raw (list or comma-separated string) until the
    provisioner normalizes it.
    """

    email: str | None = None
    password: str | None = None
    chosen_name: str | None = None
    pronouns: str | None = None
    identities: list[str] = field(default_factory=list)
    role: str = "user"
    looking_for: list[str] = field(default_factory=list)
    city: str | None = None
    languages: list[str] | str | None = None
    topics: list[str] = field(default_factory=list)
    bio: str | None = None


@dataclass
class UserSnapshot:
    """The user view returned alongside a fresh session token."""

    id: str
    email: str
    chosen_name: str | None
    pronouns: str | None
    role: str


@dataclass
class SignupResult:
    token: str
    user: UserSnapshot
    requires_email_confirmation: bool
    warnings: list[str] = field(default_factory=list)


@dataclass
class LoginResult:
    token: str
    user: UserSnapshot
