"""Admin-only complaint operations: status changes and public replies."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
import logging

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .auth import Actor
from .errors import AccessDenied, NotFound, TransientStorageError, Unauthorized, ValidationError
from .models import Complaint, ComplaintReply, ComplaintStatus

logger = logging.getLogger("quirii.admin")

REPLY_MAX = 2000


class ReplyPublic(BaseModel):
    id: str
    complaint_id: str
    reply_text: str
    created_at: Optional[datetime] = None


def _require_admin(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise Unauthorized("Not authenticated")
    if not actor.is_admin:
        raise AccessDenied("Insufficient privileges")
    return actor


def coerce_status(value) -> ComplaintStatus:
    try:
        return ComplaintStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ComplaintStatus)
        raise ValidationError(f"Invalid status. Allowed: {allowed}") from None


async def _get_complaint(session, complaint_id: str) -> Complaint:
    complaint = await session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFound("Complaint not found")
    return complaint


async def set_status(session, actor: Optional[Actor], complaint_id: str, status) -> Complaint:
    """Overwrite a complaint's status. Every status is reachable from every other."""
    actor = _require_admin(actor)
    new_status = coerce_status(status)
    complaint = await _get_complaint(session, complaint_id)

    old_status = complaint.status
    complaint.status = new_status.value
    complaint.updated_at = datetime.now(timezone.utc)
    session.add(complaint)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Status update failed for %s: %s", complaint_id, exc)
        raise TransientStorageError("Error updating status") from exc
    await session.refresh(complaint)

    logger.info("Complaint %s status %s -> %s by %s", complaint_id, old_status, new_status.value, actor.user_id)
    return complaint


async def post_reply(session, actor: Optional[Actor], complaint_id: str, text: str) -> ReplyPublic:
    actor = _require_admin(actor)
    reply_text = (text or "").strip()
    if not reply_text:
        raise ValidationError("Reply text must not be empty")
    if len(reply_text) > REPLY_MAX:
        raise ValidationError(f"Reply must be less than {REPLY_MAX} characters")
    await _get_complaint(session, complaint_id)

    reply = ComplaintReply(complaint_id=complaint_id, admin_id=actor.user_id, reply_text=reply_text)
    session.add(reply)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Reply insert failed for %s: %s", complaint_id, exc)
        raise TransientStorageError("Error posting reply") from exc
    await session.refresh(reply)
    return ReplyPublic(
        id=reply.id, complaint_id=reply.complaint_id, reply_text=reply.reply_text, created_at=reply.created_at
    )


async def list_replies(session, complaint_id: str) -> List[ReplyPublic]:
    """Replies for a complaint, newest first. Callers gate read access."""
    result = await session.exec(
        select(ComplaintReply)
        .where(ComplaintReply.complaint_id == complaint_id)
        .order_by(ComplaintReply.created_at.desc())
    )
    return [
        ReplyPublic(id=r.id, complaint_id=r.complaint_id, reply_text=r.reply_text, created_at=r.created_at)
        for r in result.all()
    ]


__all__ = ["ReplyPublic", "coerce_status", "set_status", "post_reply", "list_replies"]
