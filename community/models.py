"""
community/models.py -- Domain dataclasses for the TransConnect community tables.

These are pure data containers with zero logic. Persistence lives in
community/store.py; signup-time derivation (initials, gradients, language
normalization) lives in auth/provisioning.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Profile:
    """Application-owned user record, one-to-one with an identity-provider account.

    id is the account id issued by the identity provider, never generated here.
    looking_for is only meaningful for role "user"; mentors store an empty list.
    """

    id: str
    email: str
    chosen_name: str
    role: str = "user"  # "user" | "mentor"
    pronouns: Optional[str] = None
    identities: list[str] = field(default_factory=list)
    looking_for: list[str] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, set by store on every write


@dataclass
class MentorEntry:
    """Publicly listable mentor directory record.

    verified and is_verified are the same flag under two names; older clients
    read one, newer clients the other. Both start False and are flipped only
    by the external moderation process.

    account_id links the entry to the signup that created it. Legacy rows
    have no account_id and are matched by name instead (see
    CommunityStore.find_mentor_for_account).

    id is None before the record is written to the database.
    """

    name: str
    initials: str
    gradient_from: str
    gradient_to: str
    pronouns: Optional[str] = None
    city: Optional[str] = None
    languages: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    bio: Optional[str] = None
    verified: bool = False
    is_verified: bool = False
    account_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Message:
    """A peer chat message, optionally addressed to a mentor thread.

    id is None before the record is written to the database.
    """

    sender_id: str
    text: str
    mentor_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
