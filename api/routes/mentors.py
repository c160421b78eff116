"""
api/routes/mentors.py -- Mentor directory routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET /api/mentors                 -- all entries, ordered by name
  GET /api/mentors/search          -- ?query= (name or city) and/or ?topic=
  GET /api/mentors/verified        -- entries verified under either flag
  GET /api/mentors/me              -- the caller's own entry (mentor role only)
  GET /api/mentors/{mentor_id}     -- single entry

Entries are created at signup by the provisioner and changed only by the
external moderation process, so this router is read-only.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import MentorResponse
from auth.dependencies import get_current_claims, require_role
from auth.errors import NotFoundError
from auth.models import TokenClaims
from community.store import CommunityStore

# Router-level dependency: every mentor route requires authentication.
router = APIRouter(dependencies=[Depends(get_current_claims)])


@router.get("/mentors", response_model=list[MentorResponse])
def list_mentors(request: Request) -> list[MentorResponse]:
    store: CommunityStore = request.app.state.store
    return [MentorResponse.from_entry(m) for m in store.list_mentors()]


@router.get("/mentors/search", response_model=list[MentorResponse])
def search_mentors(
    request: Request,
    query: Optional[str] = None,
    topic: Optional[str] = None,
) -> list[MentorResponse]:
    """Filter by case-insensitive name/city substring and exact topic membership.

    Both filters are optional; with neither, this is the full directory.
    """
    store: CommunityStore = request.app.state.store
    return [MentorResponse.from_entry(m) for m in store.list_mentors(query=query, topic=topic)]


@router.get("/mentors/verified", response_model=list[MentorResponse])
def verified_mentors(request: Request) -> list[MentorResponse]:
    store: CommunityStore = request.app.state.store
    return [MentorResponse.from_entry(m) for m in store.list_mentors(verified_only=True)]


@router.get("/mentors/me", response_model=MentorResponse)
def my_mentor_entry(
    request: Request,
    claims: TokenClaims = Depends(require_role("mentor")),
) -> MentorResponse:
    """Return the directory entry created by the caller's signup.

    Falls back to the caller's chosen name for entries written before
    account linkage existed.
    """
    store: CommunityStore = request.app.state.store
    profile = store.get_profile(claims.id)
    entry = store.find_mentor_for_account(claims.id, profile.chosen_name if profile else "")
    if entry is None:
        raise NotFoundError("Mentor not found.")
    return MentorResponse.from_entry(entry)


@router.get("/mentors/{mentor_id}", response_model=MentorResponse)
def get_mentor(request: Request, mentor_id: int) -> MentorResponse:
    store: CommunityStore = request.app.state.store
    entry = store.get_mentor(mentor_id)
    if entry is None:
        raise NotFoundError("Mentor not found.")
    return MentorResponse.from_entry(entry)
