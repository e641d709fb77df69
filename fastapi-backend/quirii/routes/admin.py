"""Admin actions on a complaint."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from .. import admin as admin_service
from ..auth import Actor, get_current_actor, require_admin
from ..complaints import ComplaintPublic, get_complaint, load_complaint
from ..database import get_session


router = APIRouter(prefix="/api/v1", tags=["admin"])


class StatusUpdateSchema(BaseModel):
    status: str


class ReplyCreate(BaseModel):
    reply_text: str


@router.patch("/complaints/{complaint_id}/status", response_model=ComplaintPublic)
async def update_status(
    complaint_id: str,
    body: StatusUpdateSchema,
    actor: Actor = Depends(require_admin),
    session=Depends(get_session),
):
    await admin_service.set_status(session, actor, complaint_id, body.status)
    return await get_complaint(session, actor, complaint_id)


@router.post("/complaints/{complaint_id}/replies", status_code=201, response_model=admin_service.ReplyPublic)
async def post_reply(
    complaint_id: str,
    body: ReplyCreate,
    actor: Actor = Depends(require_admin),
    session=Depends(get_session),
):
    return await admin_service.post_reply(session, actor, complaint_id, body.reply_text)


@router.get("/complaints/{complaint_id}/replies", response_model=List[admin_service.ReplyPublic])
async def list_replies(
    complaint_id: str,
    actor: Actor = Depends(get_current_actor),
    session=Depends(get_session),
):
    await load_complaint(session, actor, complaint_id)
    return await admin_service.list_replies(session, complaint_id)
