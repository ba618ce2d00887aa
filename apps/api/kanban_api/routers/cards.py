from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import board_access, card_access, column_access, resolve_membership
from kanban_api.activity import (
  ActivityType,
  AssigneeDetails,
  CardCreatedDetails,
  CardMovedDetails,
  CardUpdatedDetails,
  DueDateDetails,
  LabelDetails,
  TitleChangedDetails,
  log_activity,
)
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest, NotFound
from kanban_api.models import Card, ChecklistItem, Column, Comment, User
from kanban_api.notifications.service import notify_assigned, notify_card_moved
from kanban_api.ordering import move_card, next_order, order_for_create, sibling_order_by
from kanban_api.projections import (
  board_labels_for,
  card_out,
  card_out_one,
  cards_out,
  checklist_out,
  comment_out,
  users_by_id,
)
from kanban_api.realtime import hub
from kanban_api.schemas import (
  CardCreateIn,
  CardDetailOut,
  CardMoveIn,
  CardOut,
  CardUpdateIn,
  ChecklistCreateIn,
  ChecklistItemOut,
  ChecklistUpdateIn,
  ColumnBrief,
  MessageOut,
)

router = APIRouter(tags=["cards"])

UPCOMING_WINDOW = timedelta(days=7)


async def _validate_assignee(db: AsyncSession, workspace_id: str, assignee_id: str) -> None:
  if not await resolve_membership(db, workspace_id, assignee_id):
    raise BadRequest("Assignee must be a member of this workspace")


def _escape_like(text: str) -> str:
  return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _diff_labels(old: list[str], new: list[str]) -> tuple[list[str], list[str]]:
  added = [lb for lb in new if lb not in old]
  removed = [lb for lb in old if lb not in new]
  return added, removed


@router.post("/cards", response_model=CardOut, status_code=status.HTTP_201_CREATED)
async def create_card(payload: CardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  scope = await column_access(db, payload.columnId, user)
  if payload.assigneeId:
    await _validate_assignee(db, scope.board.workspace_id, payload.assigneeId)

  order = await order_for_create(db, Card.order, Card.column_id, payload.columnId, payload.order)
  c = Card(
    column_id=payload.columnId,
    title=payload.title,
    description=payload.description,
    order=order,
    assignee_id=payload.assigneeId,
    creator_id=user.id,
    due_date=payload.dueDate,
    labels=list(payload.labels or []),
  )
  db.add(c)
  await db.flush()
  await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.CREATE_CARD, details=CardCreatedDetails(title=c.title))
  await db.commit()

  out = await card_out_one(db, c)
  await hub.emit(scope.board.id, "cardCreated", out)
  return out


@router.get("/cards", response_model=list[CardOut])
async def list_cards(
  columnId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CardOut]:
  if not columnId:
    raise BadRequest("columnId is required")
  await column_access(db, columnId, user)
  res = await db.execute(
    select(Card).where(Card.column_id == columnId, Card.is_archived.is_(False)).order_by(*sibling_order_by(Card))
  )
  return await cards_out(db, list(res.scalars().all()))


@router.get("/cards/archived", response_model=list[CardOut])
async def archived_cards(
  boardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CardOut]:
  if not boardId:
    raise BadRequest("boardId is required")
  await board_access(db, boardId, user)
  res = await db.execute(
    select(Card)
    .join(Column, Column.id == Card.column_id)
    .where(Column.board_id == boardId, Card.is_archived.is_(True))
    .order_by(Card.updated_at.desc(), Card.id.asc())
  )
  return await cards_out(db, list(res.scalars().all()))


@router.get("/cards/search", response_model=list[CardOut])
async def search_cards(
  boardId: str | None = None,
  keyword: str | None = None,
  assigneeId: str | None = None,
  labels: list[str] | None = Query(default=None),
  dueDateFilter: Literal["overdue", "upcoming", "none"] | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CardOut]:
  if not boardId:
    raise BadRequest("boardId is required")
  await board_access(db, boardId, user)

  stmt = (
    select(Card)
    .join(Column, Column.id == Card.column_id)
    .where(Column.board_id == boardId, Card.is_archived.is_(False))
  )
  kw = (keyword or "").strip()
  if kw:
    pattern = f"%{_escape_like(kw.lower())}%"
    stmt = stmt.where(
      or_(
        func.lower(Card.title).like(pattern, escape="\\"),
        func.lower(func.coalesce(Card.description, "")).like(pattern, escape="\\"),
      )
    )
  if assigneeId:
    stmt = stmt.where(Card.assignee_id == assigneeId)
  now = datetime.now(timezone.utc)
  if dueDateFilter == "overdue":
    stmt = stmt.where(Card.due_date.is_not(None), Card.due_date < now)
  elif dueDateFilter == "upcoming":
    stmt = stmt.where(Card.due_date.is_not(None), Card.due_date >= now, Card.due_date <= now + UPCOMING_WINDOW)
  elif dueDateFilter == "none":
    stmt = stmt.where(Card.due_date.is_(None))
  stmt = stmt.order_by(Column.order.asc(), *sibling_order_by(Card))

  res = await db.execute(stmt)
  cards = list(res.scalars().all())
  wanted = [lb for lb in (labels or []) if lb]
  if wanted:
    # JSON list membership is not portable across backends; filter here.
    cards = [c for c in cards if any(lb in (c.labels or []) for lb in wanted)]
  return await cards_out(db, cards)


@router.get("/cards/{card_id}", response_model=CardDetailOut)
async def get_card(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardDetailOut:
  scope = await card_access(db, card_id, user)
  c = scope.card

  cres = await db.execute(
    select(Comment, User)
    .join(User, User.id == Comment.author_id)
    .where(Comment.card_id == card_id)
    .order_by(Comment.created_at.desc(), Comment.id.desc())
  )
  comments = [comment_out(cm, u) for cm, u in cres.all()]
  ires = await db.execute(
    select(ChecklistItem).where(ChecklistItem.card_id == card_id).order_by(ChecklistItem.position.asc(), ChecklistItem.created_at.asc())
  )
  checklist = [checklist_out(i) for i in ires.scalars().all()]

  users = await users_by_id(db, [c.assignee_id, c.creator_id])
  labels = await board_labels_for(db, [c.id])
  base = card_out(c, users, labels.get(c.id))
  return CardDetailOut(
    **base.model_dump(),
    column=ColumnBrief(id=scope.column.id, title=scope.column.title, boardId=scope.board.id),
    comments=comments,
    checklist=checklist,
  )


@router.patch("/cards/{card_id}", response_model=CardOut)
async def update_card(
  card_id: str,
  payload: CardUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CardOut:
  scope = await card_access(db, card_id, user)
  c = scope.card
  fields = payload.model_fields_set

  if "title" in fields and payload.title is not None and payload.title != c.title:
    details = TitleChangedDetails(oldTitle=c.title, newTitle=payload.title)
    c.title = payload.title
    await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.UPDATE_TITLE, details=details)

  if "description" in fields and payload.description != c.description:
    c.description = payload.description
    await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.UPDATE_DESCRIPTION)

  if "order" in fields and payload.order is not None:
    c.order = payload.order

  if "assigneeId" in fields:
    new_assignee = payload.assigneeId or None
    old_assignee = c.assignee_id
    if new_assignee and new_assignee != old_assignee:
      await _validate_assignee(db, scope.workspace_id, new_assignee)
      c.assignee_id = new_assignee
      await log_activity(
        db, card_id=c.id, user_id=user.id, action_type=ActivityType.ASSIGN_USER, details=AssigneeDetails(assigneeId=new_assignee)
      )
      await notify_assigned(db, card=c, assignee_id=new_assignee, actor=user)
    elif not new_assignee and old_assignee:
      c.assignee_id = None
      await log_activity(
        db, card_id=c.id, user_id=user.id, action_type=ActivityType.UNASSIGN_USER, details=AssigneeDetails(assigneeId=old_assignee)
      )

  if "dueDate" in fields:
    new_due = payload.dueDate
    old_due = c.due_date
    if new_due and (old_due is None or new_due != old_due):
      c.due_date = new_due
      await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.UPDATE_DUE_DATE, details=DueDateDetails(dueDate=new_due))
    elif new_due is None and old_due is not None:
      c.due_date = None
      await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.REMOVE_DUE_DATE)

  if "labels" in fields and payload.labels is not None:
    old_labels = list(c.labels or [])
    new_labels = list(dict.fromkeys(payload.labels))
    added, removed = _diff_labels(old_labels, new_labels)
    c.labels = new_labels
    for lb in added:
      await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.ADD_LABEL, details=LabelDetails(label=lb))
    for lb in removed:
      await log_activity(db, card_id=c.id, user_id=user.id, action_type=ActivityType.REMOVE_LABEL, details=LabelDetails(label=lb))

  await db.commit()
  out = await card_out_one(db, c)
  await hub.emit(scope.board.id, "cardUpdated", out)
  return out


@router.patch("/cards/{card_id}/move", response_model=CardOut)
async def move(card_id: str, payload: CardMoveIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  scope = await card_access(db, card_id, user)
  target = await column_access(db, payload.columnId, user)
  if target.board.workspace_id != scope.workspace_id:
    raise BadRequest("Target column belongs to another workspace")

  c = scope.card
  from_column = scope.column
  changed_column = move_card(c, column_id=target.column.id, order=payload.order)
  if changed_column:
    await log_activity(
      db,
      card_id=c.id,
      user_id=user.id,
      action_type=ActivityType.MOVE_CARD,
      details=CardMovedDetails(fromColumn=from_column.title, toColumn=target.column.title),
    )
    await notify_card_moved(db, card=c, to_column=target.column, actor=user)
  await db.commit()

  out = await card_out_one(db, c)
  event = {"cardId": c.id, "fromColumnId": from_column.id, "toColumnId": target.column.id, "order": c.order, "card": out}
  await hub.emit(target.board.id, "cardMoved", event)
  if target.board.id != scope.board.id:
    await hub.emit(scope.board.id, "cardMoved", event)
  return out


@router.delete("/cards/{card_id}", response_model=MessageOut)
async def delete_card(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await card_access(db, card_id, user)
  await db.delete(scope.card)
  await db.commit()
  await hub.emit(scope.board.id, "cardDeleted", {"cardId": card_id})
  return MessageOut(message="Card deleted successfully")


async def _set_archived(db: AsyncSession, card_id: str, user: User, archived: bool) -> CardOut:
  scope = await card_access(db, card_id, user)
  c = scope.card
  c.is_archived = archived
  await log_activity(
    db, card_id=c.id, user_id=user.id, action_type=ActivityType.UPDATE_CARD, details=CardUpdatedDetails(archived=archived)
  )
  await db.commit()
  out = await card_out_one(db, c)
  await hub.emit(scope.board.id, "cardUpdated", out)
  return out


@router.patch("/cards/{card_id}/archive", response_model=CardOut)
async def archive(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  return await _set_archived(db, card_id, user, True)


@router.patch("/cards/{card_id}/unarchive", response_model=CardOut)
async def unarchive(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  return await _set_archived(db, card_id, user, False)


@router.patch("/cards/{card_id}/toggle-completed", response_model=CardOut)
async def toggle_completed(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  scope = await card_access(db, card_id, user)
  c = scope.card
  c.is_completed = not c.is_completed
  kind = ActivityType.COMPLETE_CARD if c.is_completed else ActivityType.REOPEN_CARD
  await log_activity(db, card_id=c.id, user_id=user.id, action_type=kind)
  await db.commit()
  out = await card_out_one(db, c)
  await hub.emit(scope.board.id, "cardUpdated", out)
  return out


@router.post("/cards/{card_id}/copy", response_model=CardOut, status_code=status.HTTP_201_CREATED)
async def copy_card(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CardOut:
  scope = await card_access(db, card_id, user)
  src = scope.card
  clone = Card(
    column_id=src.column_id,
    title=src.title,
    description=src.description,
    order=await next_order(db, Card.order, Card.column_id, src.column_id),
    creator_id=user.id,
    labels=list(src.labels or []),
  )
  db.add(clone)
  await db.flush()
  await log_activity(
    db,
    card_id=clone.id,
    user_id=user.id,
    action_type=ActivityType.CREATE_CARD,
    details=CardCreatedDetails(title=clone.title, copiedFromCardId=src.id),
  )
  await db.commit()
  out = await card_out_one(db, clone)
  await hub.emit(scope.board.id, "cardCreated", out)
  return out


# Checklist


async def _checklist_item(db: AsyncSession, item_id: str, user: User) -> ChecklistItem:
  res = await db.execute(select(ChecklistItem).where(ChecklistItem.id == item_id))
  i = res.scalar_one_or_none()
  if not i:
    raise NotFound("Checklist item not found")
  await card_access(db, i.card_id, user)
  return i


@router.get("/cards/{card_id}/checklist", response_model=list[ChecklistItemOut])
async def list_checklist(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ChecklistItemOut]:
  await card_access(db, card_id, user)
  res = await db.execute(
    select(ChecklistItem).where(ChecklistItem.card_id == card_id).order_by(ChecklistItem.position.asc(), ChecklistItem.created_at.asc())
  )
  return [checklist_out(i) for i in res.scalars().all()]


@router.post("/cards/{card_id}/checklist", response_model=ChecklistItemOut, status_code=status.HTTP_201_CREATED)
async def create_checklist_item(
  card_id: str,
  payload: ChecklistCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ChecklistItemOut:
  await card_access(db, card_id, user)
  pos = await next_order(db, ChecklistItem.position, ChecklistItem.card_id, card_id)
  i = ChecklistItem(card_id=card_id, content=payload.content, is_completed=False, position=pos)
  db.add(i)
  await db.commit()
  return checklist_out(i)


@router.patch("/checklist/{item_id}", response_model=ChecklistItemOut)
async def update_checklist_item(
  item_id: str,
  payload: ChecklistUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ChecklistItemOut:
  i = await _checklist_item(db, item_id, user)
  if payload.content is not None:
    i.content = payload.content
  if payload.isCompleted is not None:
    i.is_completed = payload.isCompleted
  await db.commit()
  return checklist_out(i)


@router.patch("/checklist/{item_id}/toggle", response_model=ChecklistItemOut)
async def toggle_checklist_item(item_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ChecklistItemOut:
  i = await _checklist_item(db, item_id, user)
  i.is_completed = not i.is_completed
  await db.commit()
  return checklist_out(i)


@router.delete("/checklist/{item_id}", response_model=MessageOut)
async def delete_checklist_item(item_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  i = await _checklist_item(db, item_id, user)
  await db.delete(i)
  await db.commit()
  return MessageOut(message="Checklist item deleted successfully")
