from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import board_access, card_access, label_access
from kanban_api.activity import ActivityType, LabelDetails, log_activity
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest, Forbidden, NotFound
from kanban_api.models import CardLabel, Label, User
from kanban_api.projections import label_out
from kanban_api.schemas import LabelCreateIn, LabelOut, LabelUpdateIn, MessageOut

router = APIRouter(prefix="/labels", tags=["labels"])


@router.post("", response_model=LabelOut, status_code=status.HTTP_201_CREATED)
async def create_label(payload: LabelCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> LabelOut:
  await board_access(db, payload.boardId, user)
  lb = Label(name=payload.name, color=payload.color, board_id=payload.boardId)
  db.add(lb)
  await db.commit()
  return label_out(lb)


@router.get("", response_model=list[LabelOut])
async def list_labels(
  boardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[LabelOut]:
  if not boardId:
    raise BadRequest("boardId is required")
  await board_access(db, boardId, user)
  res = await db.execute(select(Label).where(Label.board_id == boardId).order_by(Label.created_at.asc(), Label.id.asc()))
  return [label_out(lb) for lb in res.scalars().all()]


@router.patch("/{label_id}", response_model=LabelOut)
async def update_label(
  label_id: str,
  payload: LabelUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> LabelOut:
  scope = await label_access(db, label_id, user)
  lb = scope.label
  if payload.name is not None:
    lb.name = payload.name
  if payload.color is not None:
    lb.color = payload.color
  await db.commit()
  return label_out(lb)


@router.delete("/{label_id}", response_model=MessageOut)
async def delete_label(label_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await label_access(db, label_id, user)
  await db.delete(scope.label)
  await db.commit()
  return MessageOut(message="Label deleted successfully")


@router.post("/card/{card_id}/label/{label_id}", response_model=MessageOut)
async def add_label_to_card(
  card_id: str,
  label_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MessageOut:
  scope = await card_access(db, card_id, user)
  res = await db.execute(select(Label).where(Label.id == label_id))
  lb = res.scalar_one_or_none()
  if not lb:
    raise NotFound("Label not found")
  if lb.board_id != scope.board.id:
    raise Forbidden("Label does not belong to this board")

  res = await db.execute(select(CardLabel.id).where(CardLabel.card_id == card_id, CardLabel.label_id == label_id))
  if res.scalar_one_or_none():
    return MessageOut(message="Label already added to card")

  db.add(CardLabel(card_id=card_id, label_id=label_id))
  await log_activity(
    db, card_id=card_id, user_id=user.id, action_type=ActivityType.ADD_LABEL, details=LabelDetails(label=lb.name, labelId=lb.id)
  )
  try:
    await db.commit()
  except IntegrityError:
    # A concurrent request applied it first.
    await db.rollback()
    return MessageOut(message="Label already added to card")
  return MessageOut(message="Label added to card successfully")


@router.delete("/card/{card_id}/label/{label_id}", response_model=MessageOut)
async def remove_label_from_card(
  card_id: str,
  label_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MessageOut:
  await card_access(db, card_id, user)
  res = await db.execute(
    select(CardLabel, Label)
    .join(Label, Label.id == CardLabel.label_id)
    .where(CardLabel.card_id == card_id, CardLabel.label_id == label_id)
  )
  row = res.one_or_none()
  if not row:
    raise NotFound("Label not found on card")
  applied, lb = row
  await db.delete(applied)
  await log_activity(
    db, card_id=card_id, user_id=user.id, action_type=ActivityType.REMOVE_LABEL, details=LabelDetails(label=lb.name, labelId=lb.id)
  )
  await db.commit()
  return MessageOut(message="Label removed from card successfully")
