from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.models import (
  Board,
  Card,
  CardLabel,
  ChecklistItem,
  Column,
  Comment,
  Label,
  User,
  Workspace,
  WorkspaceInvitation,
  WorkspaceMember,
)
from kanban_api.ordering import sibling_order_by
from kanban_api.schemas import (
  BoardOut,
  CardOut,
  ChecklistItemOut,
  ColumnOut,
  CommentOut,
  InvitationOut,
  LabelOut,
  MemberOut,
  UserBrief,
  WorkspaceBrief,
)


def user_brief(u: User | None) -> UserBrief | None:
  # Never expose password_hash.
  if u is None:
    return None
  return UserBrief(id=u.id, name=u.name, email=u.email, avatarUrl=u.avatar_url)


async def users_by_id(db: AsyncSession, ids: Iterable[str | None]) -> dict[str, User]:
  wanted = {i for i in ids if i}
  if not wanted:
    return {}
  res = await db.execute(select(User).where(User.id.in_(wanted)))
  return {u.id: u for u in res.scalars().all()}


def label_out(lb: Label) -> LabelOut:
  return LabelOut(id=lb.id, boardId=lb.board_id, name=lb.name, color=lb.color, createdAt=lb.created_at)


def checklist_out(i: ChecklistItem) -> ChecklistItemOut:
  return ChecklistItemOut(
    id=i.id, cardId=i.card_id, content=i.content, isCompleted=i.is_completed, position=i.position, createdAt=i.created_at
  )


def comment_out(c: Comment, author: User | None) -> CommentOut:
  return CommentOut(
    id=c.id,
    cardId=c.card_id,
    authorId=c.author_id,
    content=c.content,
    mentions=list(c.mentions or []),
    createdAt=c.created_at,
    updatedAt=c.updated_at,
    author=user_brief(author),
  )


def member_out(m: WorkspaceMember, u: User) -> MemberOut:
  return MemberOut(id=m.id, userId=m.user_id, workspaceId=m.workspace_id, role=m.role, joinedAt=m.joined_at, user=user_brief(u))


def invitation_out(inv: WorkspaceInvitation, ws: Workspace | None = None, invited_by: User | None = None) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    workspaceId=inv.workspace_id,
    invitedUserId=inv.invited_user_id,
    invitedById=inv.invited_by_id,
    role=inv.role,
    status=inv.status,
    createdAt=inv.created_at,
    respondedAt=inv.responded_at,
    workspace=WorkspaceBrief(id=ws.id, name=ws.name, description=ws.description) if ws else None,
    invitedBy=user_brief(invited_by),
  )


async def board_labels_for(db: AsyncSession, card_ids: list[str]) -> dict[str, list[Label]]:
  if not card_ids:
    return {}
  res = await db.execute(
    select(CardLabel.card_id, Label)
    .join(Label, Label.id == CardLabel.label_id)
    .where(CardLabel.card_id.in_(card_ids))
    .order_by(CardLabel.created_at.asc())
  )
  out: dict[str, list[Label]] = {}
  for card_id, lb in res.all():
    out.setdefault(card_id, []).append(lb)
  return out


def card_out(c: Card, users: dict[str, User], board_labels: list[Label] | None = None) -> CardOut:
  return CardOut(
    id=c.id,
    columnId=c.column_id,
    title=c.title,
    description=c.description,
    order=c.order,
    assigneeId=c.assignee_id,
    creatorId=c.creator_id,
    dueDate=c.due_date,
    labels=list(c.labels or []),
    isCompleted=c.is_completed,
    isArchived=c.is_archived,
    createdAt=c.created_at,
    updatedAt=c.updated_at,
    assignee=user_brief(users.get(c.assignee_id)) if c.assignee_id else None,
    creator=user_brief(users.get(c.creator_id)),
    boardLabels=[label_out(lb) for lb in (board_labels or [])],
  )


async def cards_out(db: AsyncSession, cards: list[Card]) -> list[CardOut]:
  users = await users_by_id(db, [x for c in cards for x in (c.assignee_id, c.creator_id)])
  labels = await board_labels_for(db, [c.id for c in cards])
  return [card_out(c, users, labels.get(c.id)) for c in cards]


async def card_out_one(db: AsyncSession, card: Card) -> CardOut:
  return (await cards_out(db, [card]))[0]


async def columns_with_cards(db: AsyncSession, columns: list[Column]) -> list[ColumnOut]:
  """Columns in order, each with its non-archived cards in order."""
  col_ids = [c.id for c in columns]
  cards: list[Card] = []
  if col_ids:
    res = await db.execute(
      select(Card).where(Card.column_id.in_(col_ids), Card.is_archived.is_(False)).order_by(*sibling_order_by(Card))
    )
    cards = list(res.scalars().all())
  rendered = await cards_out(db, cards)
  by_col: dict[str, list[CardOut]] = {}
  for co in rendered:
    by_col.setdefault(co.columnId, []).append(co)
  return [column_out(col, by_col.get(col.id, [])) for col in columns]


def column_out(col: Column, cards: list[CardOut] | None = None) -> ColumnOut:
  return ColumnOut(
    id=col.id,
    boardId=col.board_id,
    title=col.title,
    order=col.order,
    createdAt=col.created_at,
    updatedAt=col.updated_at,
    cards=cards or [],
  )


def board_out(b: Board, columns: list[ColumnOut] | None = None) -> BoardOut:
  return BoardOut(
    id=b.id,
    name=b.name,
    description=b.description,
    workspaceId=b.workspace_id,
    createdAt=b.created_at,
    updatedAt=b.updated_at,
    columns=columns or [],
  )
