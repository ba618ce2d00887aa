from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.models import ActivityLog, User


class ActivityType(str, enum.Enum):
  CREATE_CARD = "CREATE_CARD"
  UPDATE_CARD = "UPDATE_CARD"
  MOVE_CARD = "MOVE_CARD"
  DELETE_CARD = "DELETE_CARD"
  ADD_COMMENT = "ADD_COMMENT"
  UPDATE_COMMENT = "UPDATE_COMMENT"
  DELETE_COMMENT = "DELETE_COMMENT"
  ASSIGN_USER = "ASSIGN_USER"
  UNASSIGN_USER = "UNASSIGN_USER"
  ADD_ATTACHMENT = "ADD_ATTACHMENT"
  DELETE_ATTACHMENT = "DELETE_ATTACHMENT"
  UPDATE_DUE_DATE = "UPDATE_DUE_DATE"
  REMOVE_DUE_DATE = "REMOVE_DUE_DATE"
  ADD_LABEL = "ADD_LABEL"
  REMOVE_LABEL = "REMOVE_LABEL"
  UPDATE_TITLE = "UPDATE_TITLE"
  UPDATE_DESCRIPTION = "UPDATE_DESCRIPTION"
  COMPLETE_CARD = "COMPLETE_CARD"
  REOPEN_CARD = "REOPEN_CARD"


class _Details(BaseModel):
  model_config = ConfigDict(extra="forbid")


class EmptyDetails(_Details):
  pass


class CardCreatedDetails(_Details):
  title: str
  copiedFromCardId: str | None = None


class CardUpdatedDetails(_Details):
  archived: bool | None = None


class TitleChangedDetails(_Details):
  oldTitle: str
  newTitle: str


class CardMovedDetails(_Details):
  fromColumn: str
  toColumn: str


class AssigneeDetails(_Details):
  assigneeId: str


class DueDateDetails(_Details):
  dueDate: datetime


class LabelDetails(_Details):
  label: str
  labelId: str | None = None


class AttachmentDetails(_Details):
  filename: str


DETAILS_BY_TYPE: dict[ActivityType, type[_Details]] = {
  ActivityType.CREATE_CARD: CardCreatedDetails,
  ActivityType.UPDATE_CARD: CardUpdatedDetails,
  ActivityType.MOVE_CARD: CardMovedDetails,
  ActivityType.DELETE_CARD: EmptyDetails,
  ActivityType.ADD_COMMENT: EmptyDetails,
  ActivityType.UPDATE_COMMENT: EmptyDetails,
  ActivityType.DELETE_COMMENT: EmptyDetails,
  ActivityType.ASSIGN_USER: AssigneeDetails,
  ActivityType.UNASSIGN_USER: AssigneeDetails,
  ActivityType.ADD_ATTACHMENT: AttachmentDetails,
  ActivityType.DELETE_ATTACHMENT: AttachmentDetails,
  ActivityType.UPDATE_DUE_DATE: DueDateDetails,
  ActivityType.REMOVE_DUE_DATE: EmptyDetails,
  ActivityType.ADD_LABEL: LabelDetails,
  ActivityType.REMOVE_LABEL: LabelDetails,
  ActivityType.UPDATE_TITLE: TitleChangedDetails,
  ActivityType.UPDATE_DESCRIPTION: EmptyDetails,
  ActivityType.COMPLETE_CARD: EmptyDetails,
  ActivityType.REOPEN_CARD: EmptyDetails,
}


def validate_details(action_type: ActivityType | str, details: BaseModel | dict[str, Any] | None) -> dict[str, Any]:
  """Check the payload against the shape registered for the action and return it as plain JSON."""
  kind = ActivityType(action_type)
  model = DETAILS_BY_TYPE[kind]
  if isinstance(details, BaseModel):
    if not isinstance(details, model):
      raise TypeError(f"{kind.value} expects {model.__name__}, got {type(details).__name__}")
    parsed = details
  else:
    parsed = model.model_validate(details or {})
  return jsonable_encoder(parsed.model_dump(exclude_none=True))


async def log_activity(
  db: AsyncSession,
  *,
  card_id: str,
  user_id: str,
  action_type: ActivityType | str,
  details: BaseModel | dict[str, Any] | None = None,
) -> ActivityLog:
  entry = ActivityLog(
    card_id=card_id,
    user_id=user_id,
    action_type=ActivityType(action_type).value,
    details=validate_details(action_type, details),
  )
  db.add(entry)
  return entry


async def get_card_activities(db: AsyncSession, card_id: str) -> list[tuple[ActivityLog, User]]:
  res = await db.execute(
    select(ActivityLog, User)
    .join(User, User.id == ActivityLog.user_id)
    .where(ActivityLog.card_id == card_id)
    .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
  )
  return [(a, u) for a, u in res.all()]
