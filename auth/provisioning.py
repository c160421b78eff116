"""
auth/provisioning.py -- Signup provisioning and the signup/login flows.

ProfileProvisioner
  Synchronizes the application-owned rows with a freshly created account:
    1. Upsert the Profile row keyed by the account id.
    2. For mentors, insert a MentorDirectoryEntry with derived initials and a
       gradient pair drawn from a fixed palette.
  Both writes are best-effort. The identity provider's account is
  authoritative; a failed row write is logged and reported in the
  `warnings` list of the outcome, never raised.

AuthService
  signup:  validate -> provider sign_up -> provision -> issue token.
  login:   validate -> provider sign_in -> read profile -> resolve role -> issue token.
  reset:   recovery token -> password rules -> provider update_password.
  Validation errors are raised before the identity provider is contacted.

Collaborators (verifier, store, issuer) are passed in explicitly; nothing in
this module reads configuration or global state.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import (
    EmailNotConfirmedError,
    InvalidCredentialsError,
    InvalidTokenError,
    ProvisioningFailedError,
    ServiceError,
    UnauthenticatedError,
    ValidationError,
)
from auth.identity import CredentialVerifier
from auth.models import LoginResult, SignupForm, SignupResult, TokenClaims, UserSnapshot
from auth.tokens import SessionIssuer
from community.models import MentorEntry, Profile
from community.store import CommunityStore

logger = logging.getLogger("transconnect.provisioning")

ROLES = ("user", "mentor")

GRADIENT_PALETTE: tuple[tuple[str, str], ...] = (
    ("#f472b6", "#7c3aed"),
    ("#7c3aed", "#38bdf8"),
    ("#38bdf8", "#f472b6"),
)

PROFILE_WARNING = "Profile could not be saved."
MENTOR_WARNING = "Mentor directory entry could not be created."

MIN_PASSWORD_LENGTH = 8
RESET_LINK_INVALID = "Invalid or expired reset link. Please request a new password reset email."


# ---------------------------------------------------------------------------
# Field derivation
# ---------------------------------------------------------------------------


def normalize_languages(value: list[str] | str | None) -> list[str]:
    """Accept a list or a comma-separated string; trim segments and drop empties.

    "Hindi, English, Tamil" -> ["Hindi", "English", "Tamil"]
    """
    if not value:
        return []
    segments = value.split(",") if isinstance(value, str) else [str(v) for v in value]
    return [s.strip() for s in segments if s.strip()]


def mentor_initials(name: str) -> str:
    """Uppercase first letter of each whitespace-separated token, at most 2.

    "Jordan Lee" -> "JL", "Sam" -> "S", "Kai Ito Mori" -> "KI"
    """
    return "".join(token[0] for token in name.split()).upper()[:2]


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_signup(form: SignupForm) -> str:
    """Check required fields and return the normalized role."""
    if _blank(form.email) or _blank(form.password) or _blank(form.chosen_name):
        raise ValidationError("Email, password, and chosen name are required.")
    role = (form.role or "user").strip().lower()
    if role not in ROLES:
        raise ValidationError("Role must be either 'user' or 'mentor'.")
    return role


def signup_metadata(form: SignupForm, role: str) -> dict[str, Any]:
    """Build the identity-provider metadata blob for a new account."""
    metadata: dict[str, Any] = {
        "chosen_name": form.chosen_name.strip(),
        "pronouns": form.pronouns,
        "identities": list(form.identities or []),
        "role": role,
    }
    if role == "user":
        metadata["looking_for"] = list(form.looking_for or [])
    else:
        metadata["city"] = form.city
        metadata["languages"] = normalize_languages(form.languages)
        metadata["topics"] = list(form.topics or [])
        metadata["bio"] = form.bio
    return metadata


# ---------------------------------------------------------------------------
# Provisioner
# ---------------------------------------------------------------------------


@dataclass
class ProvisionOutcome:
    """What the best-effort writes produced. None means the write failed."""

    profile: Optional[Profile] = None
    mentor: Optional[MentorEntry] = None
    warnings: list[str] = field(default_factory=list)


class ProfileProvisioner:
    """Writes the Profile (and, for mentors, MentorDirectoryEntry) for a new account.

    rng selects the gradient pair; pass a seeded random.Random for
    deterministic output.
    """

    def __init__(self, store: CommunityStore, rng: random.Random | None = None) -> None:
        self.store = store
        self.rng = rng or random.Random()

    def provision(self, account_id: str, form: SignupForm, role: str) -> ProvisionOutcome:
        outcome = ProvisionOutcome()
        chosen_name = form.chosen_name.strip()

        profile = Profile(
            id=account_id,
            email=form.email.strip(),
            chosen_name=chosen_name,
            pronouns=form.pronouns,
            identities=list(form.identities or []),
            looking_for=list(form.looking_for or []) if role == "user" else [],
            role=role,
        )
        try:
            outcome.profile = self.store.upsert_profile(profile)
        except SQLAlchemyError as exc:
            logger.warning("Profile creation failed for %s: %s", account_id, exc)
            outcome.warnings.append(PROFILE_WARNING)

        if role == "mentor":
            gradient_from, gradient_to = self.rng.choice(GRADIENT_PALETTE)
            entry = MentorEntry(
                name=chosen_name,
                pronouns=form.pronouns,
                city=form.city,
                languages=normalize_languages(form.languages),
                topics=list(form.topics or []),
                bio=form.bio,
                initials=mentor_initials(chosen_name),
                gradient_from=gradient_from,
                gradient_to=gradient_to,
                verified=False,
                is_verified=False,
                account_id=account_id,
            )
            try:
                entry.id = self.store.create_mentor(entry)
                outcome.mentor = entry
            except SQLAlchemyError as exc:
                logger.warning("Mentor entry creation failed for %s: %s", account_id, exc)
                outcome.warnings.append(MENTOR_WARNING)

        return outcome


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


class AuthService:
    """Signup and login orchestration over the injected collaborators.

    role_resolution decides which role a login token carries:
      "profile" -- profile row role, else identity metadata role, else "user".
      "fixed"   -- always "user".
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        issuer: SessionIssuer,
        store: CommunityStore,
        provisioner: ProfileProvisioner | None = None,
        role_resolution: str = "profile",
    ) -> None:
        self.verifier = verifier
        self.issuer = issuer
        self.store = store
        self.provisioner = provisioner or ProfileProvisioner(store)
        self.role_resolution = role_resolution

    def signup(self, form: SignupForm) -> SignupResult:
        role = validate_signup(form)
        email = form.email.strip()
        try:
            account = self.verifier.sign_up(email, form.password, signup_metadata(form, role))
            outcome = self.provisioner.provision(account.account_id, form, role)
            token = self.issuer.issue(TokenClaims(id=account.account_id, email=email, role=role))
        except ServiceError:
            raise
        except Exception as exc:
            logger.exception("Signup failed")
            raise ProvisioningFailedError() from exc

        return SignupResult(
            token=token,
            user=UserSnapshot(
                id=account.account_id,
                email=email,
                chosen_name=form.chosen_name.strip(),
                pronouns=form.pronouns,
                role=role,
            ),
            requires_email_confirmation=not account.has_active_session,
            warnings=outcome.warnings,
        )

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        if _blank(email) or _blank(password):
            raise ValidationError("Email and password are required.")
        try:
            account = self.verifier.sign_in_with_password(email.strip(), password)
        except EmailNotConfirmedError:
            raise
        except ServiceError as exc:
            raise InvalidCredentialsError(exc.message) from exc
        except Exception as exc:
            logger.exception("Login failed")
            raise ServiceError("Login failed.") from exc

        profile = self._read_profile(account.account_id)
        metadata = account.metadata or {}
        role = self.resolve_role(profile, metadata)
        token = self.issuer.issue(TokenClaims(id=account.account_id, email=account.email, role=role))
        return LoginResult(
            token=token,
            user=UserSnapshot(
                id=account.account_id,
                email=account.email,
                chosen_name=(profile.chosen_name if profile else None) or metadata.get("chosen_name"),
                pronouns=(profile.pronouns if profile else None) or metadata.get("pronouns"),
                role=role,
            ),
        )

    def request_password_reset(self, email: Optional[str], redirect_to: Optional[str] = None) -> None:
        """Ask the provider to send a reset link.

        Provider rejections are logged and not surfaced, so the response does
        not reveal whether an address is registered.
        """
        if _blank(email):
            raise ValidationError("Email is required.")
        try:
            self.verifier.send_password_reset(email.strip(), redirect_to or None)
        except ServiceError as exc:
            logger.info("Password reset not sent: %s", exc.message)

    def reset_password(
        self,
        access_token: Optional[str],
        password: Optional[str],
        confirm_password: Optional[str],
    ) -> None:
        """Complete a reset: set a new password using the link's recovery session.

        Order: recovery token present (401), password rules (400), then the
        provider. An expired or rejected recovery token answers 401 with a
        prompt to request a new link.
        """
        if _blank(access_token):
            raise UnauthenticatedError(RESET_LINK_INVALID)
        if password is None or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if password != confirm_password:
            raise ValidationError("Passwords do not match.")
        try:
            self.verifier.update_password(access_token.strip(), password)
        except UnauthenticatedError as exc:
            raise InvalidTokenError(RESET_LINK_INVALID) from exc
        except ServiceError:
            raise
        except Exception as exc:
            logger.exception("Password update failed")
            raise ServiceError("Password update failed.") from exc

    def resolve_role(self, profile: Optional[Profile], metadata: dict[str, Any]) -> str:
        if self.role_resolution == "fixed":
            return "user"
        candidates = ((profile.role if profile else None), metadata.get("role"))
        for candidate in candidates:
            if candidate in ROLES:
                return candidate
        return "user"

    def _read_profile(self, account_id: str) -> Optional[Profile]:
        try:
            return self.store.get_profile(account_id)
        except SQLAlchemyError as exc:
            logger.warning("Profile lookup failed for %s: %s", account_id, exc)
            return None
