"""
api/routes/auth.py -- Signup, login, and profile REST endpoints.

Routes:
  POST /api/auth/signup            -- create account, provision profile, issue token
  POST /api/auth/login             -- password login, issue token
  POST /api/auth/forgot-password   -- ask the identity provider to send a reset link
  POST /api/auth/reset-password    -- set a new password using the reset link's recovery session
  GET  /api/auth/profile           -- current user's profile (requires auth)
  PUT  /api/auth/profile           -- update current user's profile (requires auth)

Security:
  POST /signup, /login and /reset-password are rate-limited per IP
  (SIGNUP_RATE_LIMIT, LOGIN_RATE_LIMIT, RESET_PASSWORD_RATE_LIMIT).
  Cache-Control: no-store on every response that carries a token.
  /forgot-password always answers the same way so it cannot be used to discover
  which addresses are registered.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    PasswordResetRequest,
    ProfileResponse,
    ProfileUpdate,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    UserResponse,
)
from auth.dependencies import bearer_token, get_current_claims
from auth.errors import NotFoundError, ValidationError
from auth.models import SignupForm, TokenClaims
from auth.provisioning import AuthService
from community.store import CommunityStore
from core.config import get_settings

# Auth policy:
# - POST /api/auth/signup:           public
# - POST /api/auth/login:            public
# - POST /api/auth/forgot-password:  public
# - POST /api/auth/reset-password:   recovery-session token (body or bearer)
# - GET  /api/auth/profile:          requires auth (get_current_claims)
# - PUT  /api/auth/profile:          requires auth (get_current_claims)
router = APIRouter()

_settings = get_settings()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.signup_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account, provision the profile rows, and return a session token.

    requiresEmailConfirmation is true when the identity provider did not open
    a session, i.e. the user must confirm their email before logging in.
    """
    service: AuthService = request.app.state.auth_service
    result = service.signup(
        SignupForm(
            email=body.email,
            password=body.password,
            chosen_name=body.chosen_name,
            pronouns=body.pronouns,
            identities=body.identities,
            role=body.role or "user",
            looking_for=body.looking_for,
            city=body.city,
            languages=body.languages,
            topics=body.topics,
            bio=body.bio,
        )
    )
    resp = JSONResponse(
        status_code=201,
        content=SignupResponse(
            token=result.token,
            user=UserResponse.from_snapshot(result.user),
            requires_email_confirmation=result.requires_email_confirmation,
            warnings=result.warnings,
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unconfirmed email answers 403 so the client can prompt the user to check
    their inbox; every other rejection answers 401.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            user=UserResponse.from_snapshot(result.user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/forgot-password")
def forgot_password(request: Request, body: PasswordResetRequest) -> dict:
    service: AuthService = request.app.state.auth_service
    redirect_to = body.redirect_to or request.app.state.settings.password_reset_redirect_url
    service.request_password_reset(body.email, redirect_to)
    return {"message": "If an account exists for that email, a password reset link has been sent."}


@limiter.limit(_settings.reset_password_rate_limit)
@router.post("/auth/reset-password")
def reset_password(request: Request, body: ResetPasswordRequest) -> dict:
    """Set a new password with the recovery session from a reset link.

    Short or mismatched passwords answer 400; a missing, expired, or rejected
    recovery token answers 401.
    """
    service: AuthService = request.app.state.auth_service
    access_token = body.access_token or bearer_token(request)
    service.reset_password(access_token, body.password, body.confirm_password)
    return {"message": "Password updated successfully."}


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ProfileResponse)
def get_profile(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> ProfileResponse:
    """Return the profile row owned by the authenticated account."""
    store: CommunityStore = request.app.state.store
    profile = store.get_profile(claims.id)
    if profile is None:
        raise NotFoundError("Profile not found.")
    return ProfileResponse.from_profile(profile)


@router.put("/auth/profile", response_model=ProfileResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    claims: TokenClaims = Depends(get_current_claims),
) -> ProfileResponse:
    """Update the caller's own profile. Only fields present in the body change.

    Repeating an identical update is a no-op, so the stored row is the same
    after one call or many.
    """
    store: CommunityStore = request.app.state.store

    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update.")
    if "chosen_name" in updates and not updates["chosen_name"]:
        raise ValidationError("Chosen name cannot be empty.")
    for list_field in ("identities", "looking_for"):
        if list_field in updates and updates[list_field] is None:
            updates[list_field] = []

    profile = store.update_profile(claims.id, **updates)
    if profile is None:
        raise NotFoundError("Profile not found.")
    return ProfileResponse.from_profile(profile)
