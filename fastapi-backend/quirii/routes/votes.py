"""Vote endpoints."""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..auth import Actor, get_current_actor, get_optional_actor
from ..database import get_session
from ..voting import cast_vote, votes_for_user


router = APIRouter(prefix="/api/v1", tags=["votes"])


class VoteRequest(BaseModel):
    vote_type: str


class VoteResponse(BaseModel):
    complaint_id: str
    action: str
    previous: str
    user_vote: Optional[str]
    upvotes: int
    downvotes: int


@router.post("/complaints/{complaint_id}/vote", response_model=VoteResponse)
async def vote(
    complaint_id: str,
    body: VoteRequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
    session=Depends(get_session),
):
    """Toggle, flip or cast the caller's vote. Anonymous callers get 401."""
    outcome = await cast_vote(session, actor, complaint_id, body.vote_type)
    return VoteResponse(
        complaint_id=outcome.complaint_id,
        action=outcome.transition.action.value,
        previous=outcome.transition.previous.value,
        user_vote=None if outcome.user_vote.value == "none" else outcome.user_vote.value,
        upvotes=outcome.upvotes,
        downvotes=outcome.downvotes,
    )


@router.get("/votes/me", response_model=Dict[str, str])
async def my_votes(actor: Actor = Depends(get_current_actor), session=Depends(get_session)):
    return await votes_for_user(session, actor.user_id)
