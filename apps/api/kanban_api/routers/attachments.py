from __future__ import annotations

import os

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import attachment_access, card_access
from kanban_api.activity import ActivityType, AttachmentDetails, log_activity
from kanban_api.config import settings
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest, NotFound
from kanban_api.models import Attachment, User
from kanban_api.projections import user_brief
from kanban_api.schemas import AttachmentOut, MessageOut
from kanban_api.storage import delete_stored_file, save_upload, stored_path

router = APIRouter(prefix="/attachments", tags=["attachments"])


def _attachment_out(a: Attachment, uploader: User | None) -> AttachmentOut:
  return AttachmentOut(
    id=a.id,
    cardId=a.card_id,
    filename=a.filename,
    mimeType=a.mime_type,
    size=a.size,
    url=a.url,
    createdAt=a.created_at,
    uploadedBy=user_brief(uploader),
  )


@router.post("", response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
  cardId: str = Form(...),
  file: UploadFile = File(...),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> AttachmentOut:
  await card_access(db, cardId, user)
  stored = await save_upload(file, settings.max_attachment_bytes)
  filename = file.filename or stored.stored_name
  a = Attachment(
    card_id=cardId,
    uploaded_by_id=user.id,
    filename=filename,
    stored_name=stored.stored_name,
    mime_type=file.content_type or "application/octet-stream",
    size=stored.size,
    url="",
  )
  try:
    db.add(a)
    await db.flush()
    a.url = f"/attachments/{a.id}/download"
    await log_activity(db, card_id=cardId, user_id=user.id, action_type=ActivityType.ADD_ATTACHMENT, details=AttachmentDetails(filename=filename))
    await db.commit()
  except Exception:
    delete_stored_file(stored.stored_name)
    raise
  return _attachment_out(a, user)


@router.get("", response_model=list[AttachmentOut])
async def list_attachments(
  cardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[AttachmentOut]:
  if not cardId:
    raise BadRequest("cardId is required")
  await card_access(db, cardId, user)
  res = await db.execute(
    select(Attachment, User)
    .outerjoin(User, User.id == Attachment.uploaded_by_id)
    .where(Attachment.card_id == cardId)
    .order_by(Attachment.created_at.desc(), Attachment.id.desc())
  )
  return [_attachment_out(a, u) for a, u in res.all()]


@router.get("/{attachment_id}/download")
async def download_attachment(attachment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> FileResponse:
  scope = await attachment_access(db, attachment_id, user)
  a = scope.attachment
  path = stored_path(a.stored_name)
  if not os.path.isfile(path):
    raise NotFound("File not found")
  return FileResponse(path=path, media_type=a.mime_type, filename=a.filename)


@router.delete("/{attachment_id}", response_model=MessageOut)
async def delete_attachment(attachment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await attachment_access(db, attachment_id, user)
  a = scope.attachment
  stored_name = a.stored_name
  await db.delete(a)
  await log_activity(
    db, card_id=a.card_id, user_id=user.id, action_type=ActivityType.DELETE_ATTACHMENT, details=AttachmentDetails(filename=a.filename)
  )
  await db.commit()
  # The row goes even when the file is already gone.
  delete_stored_file(stored_name)
  return MessageOut(message="Attachment deleted successfully")
