"""
Vote reconciliation.

Each (user, complaint) pair is in one of three states: no vote, up, or down.
Requesting the direction you already hold retracts the vote, requesting the
other direction flips it, and requesting anything from no vote inserts a row.

The votes table carries a unique constraint on (user_id, complaint_id); that
constraint, not an in-process lock, is what rejects a racing duplicate insert.
After every transition the complaint's up/down tallies are recounted from the
votes table inside the same transaction, so stored aggregates never drift from
the rows they summarize.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import select

from .auth import Actor
from .categories import can_access_category
from .errors import (
    AccessDenied,
    ConflictError,
    NotFound,
    TransientStorageError,
    Unauthorized,
    ValidationError,
)
from .models import Complaint, Vote, VoteType
from .observability import vote_conflicts_total, vote_transitions_total

logger = logging.getLogger("quirii.voting")


class VoteState(str, Enum):
    NONE = "none"
    UP = "up"
    DOWN = "down"


class VoteAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class VoteTransition:
    previous: VoteState
    current: VoteState
    action: VoteAction
    up_delta: int
    down_delta: int


@dataclass(frozen=True)
class VoteOutcome:
    complaint_id: str
    transition: VoteTransition
    user_vote: VoteState
    upvotes: int
    downvotes: int


def _delta(state: VoteState, sign: int) -> Tuple[int, int]:
    if state is VoteState.UP:
        return sign, 0
    if state is VoteState.DOWN:
        return 0, sign
    return 0, 0


def coerce_vote_type(value) -> VoteType:
    try:
        return VoteType(value)
    except ValueError:
        raise ValidationError("vote_type must be 'up' or 'down'") from None


def plan_vote(current: VoteState, requested: VoteType) -> VoteTransition:
    """Pure transition function; see the module docstring for the rules."""
    wanted = VoteState(requested.value)
    if current is VoteState.NONE:
        up, down = _delta(wanted, +1)
        return VoteTransition(current, wanted, VoteAction.INSERT, up, down)
    if current is wanted:
        up, down = _delta(current, -1)
        return VoteTransition(current, VoteState.NONE, VoteAction.DELETE, up, down)

    off_up, off_down = _delta(current, -1)
    on_up, on_down = _delta(wanted, +1)
    return VoteTransition(current, wanted, VoteAction.UPDATE, off_up + on_up, off_down + on_down)


async def _find_vote(session, user_id: str, complaint_id: str) -> Optional[Vote]:
    result = await session.exec(
        select(Vote).where(Vote.user_id == user_id, Vote.complaint_id == complaint_id)
    )
    return result.first()


async def recount_votes(session, complaint_id: str) -> Tuple[int, int]:
    """Recompute and store a complaint's tallies from its vote rows (no commit)."""
    result = await session.exec(
        select(Vote.vote_type, func.count(Vote.id))
        .where(Vote.complaint_id == complaint_id)
        .group_by(Vote.vote_type)
    )
    counts = {vote_type: n for vote_type, n in result.all()}
    upvotes = counts.get(VoteType.UP.value, 0)
    downvotes = counts.get(VoteType.DOWN.value, 0)

    complaint = await session.get(Complaint, complaint_id)
    if complaint is not None:
        complaint.upvotes = upvotes
        complaint.downvotes = downvotes
        session.add(complaint)
    return upvotes, downvotes


async def _commit_with_recount(session, complaint_id: str) -> None:
    try:
        await session.flush()
        await recount_votes(session, complaint_id)
        await session.commit()
    except (IntegrityError, StaleDataError) as exc:
        await session.rollback()
        vote_conflicts_total.inc()
        logger.info("Vote conflict on complaint %s: %s", complaint_id, exc)
        raise ConflictError("Your vote on this complaint changed concurrently; refresh and try again") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Vote write failed for complaint %s: %s", complaint_id, exc)
        raise TransientStorageError("Error voting, please try again") from exc


async def record_vote(session, user_id: str, complaint_id: str, vote_type: VoteType) -> Vote:
    """Insert a new vote row; a second row for the same pair raises ConflictError."""
    vote = Vote(user_id=user_id, complaint_id=complaint_id, vote_type=VoteType(vote_type).value)
    session.add(vote)
    await _commit_with_recount(session, complaint_id)
    return vote


async def cast_vote(session, actor: Optional[Actor], complaint_id: str, vote_type) -> VoteOutcome:
    if actor is None:
        raise Unauthorized("Please login to vote")
    requested = coerce_vote_type(vote_type)

    complaint = await session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFound("Complaint not found")
    if not can_access_category(actor.hostel, complaint.category, actor.is_admin):
        raise AccessDenied("You are not authorized to access this section")

    existing = await _find_vote(session, actor.user_id, complaint_id)
    current = VoteState(existing.vote_type) if existing else VoteState.NONE
    transition = plan_vote(current, requested)

    if transition.action is VoteAction.INSERT:
        session.add(Vote(user_id=actor.user_id, complaint_id=complaint_id, vote_type=requested.value))
    elif transition.action is VoteAction.UPDATE:
        existing.vote_type = requested.value
        session.add(existing)
    else:
        await session.delete(existing)
    await _commit_with_recount(session, complaint_id)

    vote_transitions_total.labels(action=transition.action.value).inc()

    # Re-read both the aggregates and the caller's vote rather than trusting
    # the planned deltas; concurrent voters may have moved the counts too.
    await session.refresh(complaint)
    refreshed = await _find_vote(session, actor.user_id, complaint_id)
    return VoteOutcome(
        complaint_id=complaint_id,
        transition=transition,
        user_vote=VoteState(refreshed.vote_type) if refreshed else VoteState.NONE,
        upvotes=complaint.upvotes,
        downvotes=complaint.downvotes,
    )


async def votes_for_user(
    session, user_id: str, complaint_ids: Optional[Iterable[str]] = None
) -> Dict[str, str]:
    """Return the user's votes as {complaint_id: 'up' | 'down'}."""
    statement = select(Vote).where(Vote.user_id == user_id)
    if complaint_ids is not None:
        statement = statement.where(Vote.complaint_id.in_(list(complaint_ids)))
    result = await session.exec(statement)
    return {vote.complaint_id: vote.vote_type for vote in result.all()}


__all__ = [
    "VoteState",
    "VoteAction",
    "VoteTransition",
    "VoteOutcome",
    "coerce_vote_type",
    "plan_vote",
    "recount_votes",
    "record_vote",
    "cast_vote",
    "votes_for_user",
]
