from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.deps import get_current_user, get_db
from kanban_api.models import User
from kanban_api.notifications.service import (
  delete_notification,
  get_unread_count,
  get_user_notifications,
  mark_all_as_read,
  mark_as_read,
)
from kanban_api.schemas import CountOut, MessageOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
  unreadOnly: bool = False,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[dict]:
  return await get_user_notifications(db, user.id, unread_only=unreadOnly)


@router.get("/unread-count", response_model=CountOut)
async def unread_count(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CountOut:
  return CountOut(count=await get_unread_count(db, user.id))


@router.patch("/read-all", response_model=CountOut)
async def read_all(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CountOut:
  n = await mark_all_as_read(db, user.id)
  await db.commit()
  return CountOut(count=n)


@router.patch("/{notification_id}/read")
async def read_one(notification_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  n = await mark_as_read(db, notification_id, user.id)
  await db.commit()
  return {"id": n.id, "read": n.read}


@router.delete("/{notification_id}", response_model=MessageOut)
async def delete_one(notification_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  await delete_notification(db, notification_id, user.id)
  await db.commit()
  return MessageOut(message="Notification deleted successfully")
