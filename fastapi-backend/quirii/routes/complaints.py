"""Category browsing, complaint posting and dashboard stats."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from .. import complaints as complaint_service
from ..admin import ReplyPublic, list_replies
from ..auth import Actor, get_current_actor
from ..categories import category_groups
from ..config import get_settings
from ..database import get_session
from ..storage import ImageStore, check_image_size, get_image_store


router = APIRouter(prefix="/api/v1", tags=["complaints"])


class ComplaintDetail(complaint_service.ComplaintPublic):
    replies: List[ReplyPublic] = []


@router.get("/categories")
async def list_categories(actor: Actor = Depends(get_current_actor)):
    """Sidebar groups, each category flagged with whether the caller may open it."""
    return {"groups": category_groups(actor.hostel, actor.is_admin)}


@router.get(
    "/categories/{category}/complaints",
    response_model=List[complaint_service.ComplaintPublic],
)
async def list_category_complaints(
    category: str,
    sort: str = Query("recent"),
    actor: Actor = Depends(get_current_actor),
    session=Depends(get_session),
):
    return await complaint_service.list_category_complaints(session, actor, category, sort)


@router.post("/complaints", status_code=201, response_model=complaint_service.ComplaintPublic)
async def post_complaint(
    category: str = Form(...),
    title: str = Form(...),
    description: str = Form(...),
    is_anonymous: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_current_actor),
    session=Depends(get_session),
    store: ImageStore = Depends(get_image_store),
):
    data = complaint_service.ComplaintCreate(
        category=category, title=title, description=description, is_anonymous=is_anonymous
    )
    attachment = None
    if image is not None and image.filename:
        # Reject on the declared size before buffering the body.
        if image.size is not None:
            check_image_size(image.size, get_settings().max_image_bytes)
        attachment = (image.filename, await image.read())
    return await complaint_service.create_complaint(session, actor, data, image=attachment, store=store)


@router.get("/complaints/{complaint_id}", response_model=ComplaintDetail)
async def get_complaint(
    complaint_id: str,
    actor: Actor = Depends(get_current_actor),
    session=Depends(get_session),
):
    complaint = await complaint_service.get_complaint(session, actor, complaint_id)
    replies = await list_replies(session, complaint_id)
    return ComplaintDetail(**complaint.model_dump(), replies=replies)


@router.get("/stats")
async def stats(actor: Actor = Depends(get_current_actor), session=Depends(get_session)):
    return await complaint_service.complaint_stats(session)
