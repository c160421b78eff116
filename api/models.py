"""
API request and response models for TransConnect REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
community/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire naming follows the deployed web client: signup fields arrive camelCase
(chosenName, lookingFor), profile rows travel snake_case, and mentor gradients
are exposed as gradientFrom/gradientTo. Aliases keep the Python side snake_case.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import UserSnapshot
from community.models import MentorEntry, Message, Profile

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/signup.

    Every field is optional at the transport level. Required-field checks
    (email, password, chosen name) happen in the auth service so the client
    receives the same 400 message regardless of which field is missing.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    chosen_name: Optional[str] = Field(default=None, alias="chosenName", max_length=255)
    pronouns: Optional[str] = Field(default=None, max_length=100)
    identities: list[str] = Field(default_factory=list, max_length=30)
    role: Optional[str] = Field(default="user", max_length=20)
    looking_for: list[str] = Field(default_factory=list, alias="lookingFor", max_length=30)
    city: Optional[str] = Field(default=None, max_length=100)
    # Either a list or a comma-separated string; normalized by the provisioner.
    languages: Union[list[str], str, None] = None
    topics: list[str] = Field(default_factory=list, max_length=30)
    bio: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("identities", "looking_for", "topics", mode="before")
    @classmethod
    def null_list_to_empty(cls, value):
        """Clients send null for untouched multi-selects; treat it as empty."""
        return [] if value is None else value


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class PasswordResetRequest(BaseModel):
    """Request body for POST /api/auth/forgot-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(default=None, max_length=255)
    redirect_to: Optional[str] = Field(default=None, alias="redirectTo", max_length=500)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password.

    access_token is the recovery-session token from the reset link. Clients may
    send it here or as the Authorization bearer credential.
    """

    model_config = ConfigDict(populate_by_name=True)

    password: Optional[str] = Field(default=None, max_length=255)
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword", max_length=255)
    access_token: Optional[str] = Field(default=None, alias="accessToken", max_length=4096)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/auth/profile. Only supplied fields are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    chosen_name: Optional[str] = Field(default=None, max_length=255)
    pronouns: Optional[str] = Field(default=None, max_length=100)
    identities: Optional[list[str]] = Field(default=None, max_length=30)
    looking_for: Optional[list[str]] = Field(default=None, max_length=30)


class MessageCreate(BaseModel):
    """Request body for POST /api/messages."""

    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(default=None, max_length=4000)
    mentor_id: Optional[int] = Field(default=None, alias="mentorId")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """User snapshot returned alongside a session token."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    chosen_name: Optional[str]
    pronouns: Optional[str]
    role: str

    @classmethod
    def from_snapshot(cls, user: UserSnapshot) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            chosen_name=user.chosen_name,
            pronouns=user.pronouns,
            role=user.role,
        )


class SignupResponse(BaseModel):
    """Response body for POST /api/auth/signup.

    warnings lists best-effort writes that failed (profile row, mentor entry).
    The account and token are valid either way.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse
    requires_email_confirmation: bool = Field(serialization_alias="requiresEmailConfirmation")
    warnings: list[str] = Field(default_factory=list)


class LoginResponse(BaseModel):
    """Response body for POST /api/auth/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    chosen_name: str
    pronouns: Optional[str]
    identities: list[str]
    looking_for: list[str]
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            chosen_name=profile.chosen_name,
            pronouns=profile.pronouns,
            identities=profile.identities,
            looking_for=profile.looking_for,
            role=profile.role,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class MentorResponse(BaseModel):
    """Public mentor directory entry. The owning account id is not exposed."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    pronouns: Optional[str]
    city: Optional[str]
    languages: list[str]
    topics: list[str]
    bio: Optional[str]
    initials: str
    gradient_from: str = Field(serialization_alias="gradientFrom")
    gradient_to: str = Field(serialization_alias="gradientTo")
    verified: bool
    is_verified: bool
    created_at: str

    @classmethod
    def from_entry(cls, entry: MentorEntry) -> "MentorResponse":
        return cls(
            id=entry.id,
            name=entry.name,
            pronouns=entry.pronouns,
            city=entry.city,
            languages=entry.languages,
            topics=entry.topics,
            bio=entry.bio,
            initials=entry.initials,
            gradient_from=entry.gradient_from,
            gradient_to=entry.gradient_to,
            verified=entry.verified,
            is_verified=entry.is_verified,
            created_at=entry.created_at,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    sender_id: str
    mentor_id: Optional[int]
    text: str
    created_at: str

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            mentor_id=message.mentor_id,
            text=message.text,
            created_at=message.created_at,
        )


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    timestamp: str
