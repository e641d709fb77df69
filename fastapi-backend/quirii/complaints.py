"""Posting, listing and reading complaints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
import logging

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select, func

from .auth import Actor
from .categories import can_access_category, is_known_category
from .errors import AccessDenied, NotFound, TransientStorageError, Unauthorized, ValidationError
from .models import Complaint, ComplaintStatus, Profile
from .observability import complaints_created_total
from .storage import ImageStore, discard_complaint_image, store_complaint_image
from .voting import votes_for_user

logger = logging.getLogger("quirii.complaints")

TITLE_MIN, TITLE_MAX = 5, 200
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 2000
SORT_OPTIONS = ("recent", "popular")


class ComplaintCreate(BaseModel):
    category: str
    title: str
    description: str
    is_anonymous: bool = False


class AuthorPublic(BaseModel):
    name: str
    registration_number: str


class ComplaintPublic(BaseModel):
    id: str
    category: str
    title: str
    description: str
    image_url: Optional[str] = None
    is_anonymous: bool
    upvotes: int
    downvotes: int
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Omitted entirely for anonymous complaints.
    author: Optional[AuthorPublic] = None
    user_vote: Optional[str] = None


def validate_complaint(data: ComplaintCreate) -> ComplaintCreate:
    """Trim and check the form; raise ValidationError with the first failing rule."""
    title = (data.title or "").strip()
    description = (data.description or "").strip()
    category = (data.category or "").strip()

    if len(title) < TITLE_MIN:
        raise ValidationError(f"Title must be at least {TITLE_MIN} characters")
    if len(title) > TITLE_MAX:
        raise ValidationError(f"Title must be less than {TITLE_MAX} characters")
    if len(description) < DESCRIPTION_MIN:
        raise ValidationError(f"Description must be at least {DESCRIPTION_MIN} characters")
    if len(description) > DESCRIPTION_MAX:
        raise ValidationError(f"Description must be less than {DESCRIPTION_MAX} characters")
    if not category:
        raise ValidationError("Please select a category")
    if not is_known_category(category):
        raise ValidationError(f"Unknown category: {category}")

    return ComplaintCreate(
        category=category,
        title=title,
        description=description,
        is_anonymous=data.is_anonymous,
    )


def to_public(complaint: Complaint, profile: Optional[Profile], user_vote: Optional[str] = None) -> ComplaintPublic:
    author = None
    if not complaint.is_anonymous and profile is not None:
        author = AuthorPublic(name=profile.name, registration_number=profile.registration_number)
    return ComplaintPublic(
        id=complaint.id,
        category=complaint.category,
        title=complaint.title,
        description=complaint.description,
        image_url=complaint.image_url,
        is_anonymous=complaint.is_anonymous,
        upvotes=complaint.upvotes,
        downvotes=complaint.downvotes,
        status=complaint.status,
        created_at=complaint.created_at,
        updated_at=complaint.updated_at,
        author=author,
        user_vote=user_vote,
    )


def _require_access(actor: Optional[Actor], category: str) -> Actor:
    if actor is None:
        raise Unauthorized("Not authenticated")
    if not can_access_category(actor.hostel, category, actor.is_admin):
        raise AccessDenied("You are not authorized to access this section")
    return actor


async def create_complaint(
    session,
    actor: Optional[Actor],
    data: ComplaintCreate,
    image: Optional[tuple[str, bytes]] = None,
    store: Optional[ImageStore] = None,
) -> ComplaintPublic:
    """Validate, gate on category access, upload the optional image, insert.

    `image` is a (file_name, bytes) pair.
    """
    if actor is None:
        raise Unauthorized("Not authenticated")
    cleaned = validate_complaint(data)
    if not can_access_category(actor.hostel, cleaned.category, actor.is_admin):
        raise AccessDenied("You do not have access to post in this category")

    stored = None
    if image is not None:
        if store is None:
            raise ValueError("An image store is required to attach an image")
        file_name, payload = image
        stored = await run_in_threadpool(store_complaint_image, store, actor.user_id, file_name, payload)

    complaint = Complaint(
        user_id=actor.user_id,
        category=cleaned.category,
        title=cleaned.title,
        description=cleaned.description,
        image_url=stored.url if stored else None,
        is_anonymous=cleaned.is_anonymous,
    )
    session.add(complaint)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Failed to insert complaint: %s", exc)
        if stored is not None:
            await run_in_threadpool(discard_complaint_image, store, stored)
        raise TransientStorageError("Error posting complaint") from exc
    await session.refresh(complaint)

    complaints_created_total.labels(category=complaint.category).inc()
    logger.info("Complaint %s posted in %s", complaint.id, complaint.category)

    profile = await session.get(Profile, actor.user_id)
    return to_public(complaint, profile)


async def list_category_complaints(
    session, actor: Optional[Actor], category: str, sort: str = "recent"
) -> List[ComplaintPublic]:
    if not is_known_category(category):
        raise NotFound(f"Unknown category: {category}")
    actor = _require_access(actor, category)
    if sort not in SORT_OPTIONS:
        raise ValidationError(f"sort must be one of: {', '.join(SORT_OPTIONS)}")

    statement = (
        select(Complaint, Profile)
        .join(Profile, Profile.id == Complaint.user_id, isouter=True)
        .where(Complaint.category == category)
    )
    if sort == "popular":
        statement = statement.order_by(Complaint.upvotes.desc(), Complaint.created_at.desc())
    else:
        statement = statement.order_by(Complaint.created_at.desc())

    result = await session.exec(statement)
    rows = result.all()
    my_votes = await votes_for_user(session, actor.user_id, [c.id for c, _ in rows])
    return [to_public(c, p, my_votes.get(c.id)) for c, p in rows]


async def load_complaint(session, actor: Optional[Actor], complaint_id: str) -> Complaint:
    """Fetch a complaint row the actor is allowed to see."""
    complaint = await session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFound("Complaint not found")
    _require_access(actor, complaint.category)
    return complaint


async def get_complaint(session, actor: Optional[Actor], complaint_id: str) -> ComplaintPublic:
    complaint = await load_complaint(session, actor, complaint_id)
    profile = await session.get(Profile, complaint.user_id)
    my_votes = await votes_for_user(session, actor.user_id, [complaint.id])
    return to_public(complaint, profile, my_votes.get(complaint.id))


async def complaint_stats(session) -> dict:
    """Counts for the dashboard cards."""
    result = await session.exec(
        select(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status)
    )
    by_status = {status: n for status, n in result.all()}
    return {
        "total": sum(by_status.values()),
        "open": by_status.get(ComplaintStatus.OPEN.value, 0),
        "in_progress": by_status.get(ComplaintStatus.IN_PROGRESS.value, 0),
        "resolved": by_status.get(ComplaintStatus.RESOLVED.value, 0),
    }


__all__ = [
    "ComplaintCreate",
    "ComplaintPublic",
    "AuthorPublic",
    "validate_complaint",
    "to_public",
    "create_complaint",
    "list_category_complaints",
    "load_complaint",
    "get_complaint",
    "complaint_stats",
]
