"""
api/routes/messages.py -- Peer chat message board.

Routes:
  GET    /api/messages            -- all messages oldest first; ?mentorId= narrows to a thread
  POST   /api/messages            -- post a message as the caller
  DELETE /api/messages/{id}       -- delete one of the caller's own messages

Delivery is request/response only; clients poll GET /messages.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import MessageCreate, MessageResponse
from auth.dependencies import get_current_claims
from auth.errors import ForbiddenError, ValidationError
from auth.models import TokenClaims
from community.models import Message
from community.store import CommunityStore

router = APIRouter()


@router.get("/messages", response_model=list[MessageResponse])
def list_messages(
    request: Request,
    mentor_id: Optional[int] = Query(default=None, alias="mentorId"),
    claims: TokenClaims = Depends(get_current_claims),
) -> list[MessageResponse]:
    store: CommunityStore = request.app.state.store
    return [MessageResponse.from_message(m) for m in store.list_messages(mentor_id=mentor_id)]


@router.post("/messages", response_model=MessageResponse, status_code=201)
def send_message(
    request: Request,
    body: MessageCreate,
    claims: TokenClaims = Depends(get_current_claims),
) -> MessageResponse:
    """Store a message from the caller. Text is trimmed and must not be empty."""
    text = (body.text or "").strip()
    if not text:
        raise ValidationError("Message text is required.")
    store: CommunityStore = request.app.state.store
    message = store.create_message(Message(sender_id=claims.id, text=text, mentor_id=body.mentor_id))
    return MessageResponse.from_message(message)


@router.delete("/messages/{message_id}")
def delete_message(
    request: Request,
    message_id: int,
    claims: TokenClaims = Depends(get_current_claims),
) -> dict:
    """Delete a message the caller sent.

    A missing message and someone else's message answer the same 403, so the
    endpoint does not reveal which ids exist.
    """
    store: CommunityStore = request.app.state.store
    if not store.delete_message(message_id, claims.id):
        raise ForbiddenError("You can only delete your own messages.")
    return {"success": True}
