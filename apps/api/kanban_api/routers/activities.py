from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import card_access
from kanban_api.activity import get_card_activities
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest
from kanban_api.models import User
from kanban_api.projections import user_brief
from kanban_api.schemas import ActivityOut

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[ActivityOut])
async def list_activities(
  cardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ActivityOut]:
  if not cardId:
    raise BadRequest("cardId is required")
  await card_access(db, cardId, user)
  return [
    ActivityOut(
      id=a.id,
      cardId=a.card_id,
      userId=a.user_id,
      actionType=a.action_type,
      details=dict(a.details or {}),
      createdAt=a.created_at,
      user=user_brief(u),
    )
    for a, u in await get_card_activities(db, cardId)
  ]
