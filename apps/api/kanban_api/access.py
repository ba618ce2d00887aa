"""
Workspace membership checks and the per-entity guards built on them.

Every board, column, card, comment, label and attachment belongs to exactly one
workspace through its parent chain. A guard loads the entity together with that
chain in a single query, fails with NotFound when the entity is missing, and
then requires the caller to be a member of the owning workspace. Guards return
the loaded rows so callers never have to fetch them a second time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.errors import Forbidden, NotFound
from kanban_api.models import (
  Attachment,
  Board,
  Card,
  Column,
  Comment,
  Label,
  Role,
  User,
  Workspace,
  WorkspaceMember,
)

MANAGERS = (Role.OWNER, Role.ADMIN)


async def resolve_membership(db: AsyncSession, workspace_id: str, user_id: str) -> WorkspaceMember | None:
  res = await db.execute(
    select(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user_id)
  )
  return res.scalar_one_or_none()


async def require_membership(db: AsyncSession, workspace_id: str, user_id: str) -> WorkspaceMember:
  m = await resolve_membership(db, workspace_id, user_id)
  if not m:
    raise Forbidden("You are not a member of this workspace")
  return m


async def require_role(
  db: AsyncSession,
  workspace_id: str,
  user_id: str,
  allowed_roles: Iterable[Role | str],
) -> WorkspaceMember:
  m = await require_membership(db, workspace_id, user_id)
  allowed = {Role(r).value for r in allowed_roles}
  if m.role not in allowed:
    raise Forbidden("Insufficient permissions")
  return m


async def _check(db: AsyncSession, workspace_id: str, user: User, roles: Iterable[Role | str] | None) -> WorkspaceMember:
  if roles:
    return await require_role(db, workspace_id, user.id, roles)
  return await require_membership(db, workspace_id, user.id)


@dataclass(frozen=True)
class WorkspaceScope:
  workspace: Workspace
  member: WorkspaceMember


@dataclass(frozen=True)
class BoardScope:
  board: Board
  member: WorkspaceMember

  @property
  def workspace_id(self) -> str:
    return self.board.workspace_id


@dataclass(frozen=True)
class ColumnScope:
  column: Column
  board: Board
  member: WorkspaceMember


@dataclass(frozen=True)
class CardScope:
  card: Card
  column: Column
  board: Board
  member: WorkspaceMember

  @property
  def workspace_id(self) -> str:
    return self.board.workspace_id


@dataclass(frozen=True)
class CommentScope:
  comment: Comment
  card: Card
  column: Column
  board: Board
  member: WorkspaceMember


@dataclass(frozen=True)
class LabelScope:
  label: Label
  board: Board
  member: WorkspaceMember


@dataclass(frozen=True)
class AttachmentScope:
  attachment: Attachment
  card: Card
  column: Column
  board: Board
  member: WorkspaceMember


async def workspace_access(
  db: AsyncSession, workspace_id: str, user: User, *, roles: Iterable[Role | str] | None = None
) -> WorkspaceScope:
  res = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
  ws = res.scalar_one_or_none()
  if not ws:
    raise NotFound("Workspace not found")
  member = await _check(db, ws.id, user, roles)
  return WorkspaceScope(workspace=ws, member=member)


async def board_access(db: AsyncSession, board_id: str, user: User, *, roles: Iterable[Role | str] | None = None) -> BoardScope:
  res = await db.execute(select(Board).where(Board.id == board_id))
  board = res.scalar_one_or_none()
  if not board:
    raise NotFound("Board not found")
  member = await _check(db, board.workspace_id, user, roles)
  return BoardScope(board=board, member=member)


async def column_access(
  db: AsyncSession, column_id: str, user: User, *, roles: Iterable[Role | str] | None = None
) -> ColumnScope:
  res = await db.execute(select(Column, Board).join(Board, Board.id == Column.board_id).where(Column.id == column_id))
  row = res.one_or_none()
  if not row:
    raise NotFound("Column not found")
  column, board = row
  member = await _check(db, board.workspace_id, user, roles)
  return ColumnScope(column=column, board=board, member=member)


async def card_access(db: AsyncSession, card_id: str, user: User, *, roles: Iterable[Role | str] | None = None) -> CardScope:
  res = await db.execute(
    select(Card, Column, Board)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .where(Card.id == card_id)
  )
  row = res.one_or_none()
  if not row:
    raise NotFound("Card not found")
  card, column, board = row
  member = await _check(db, board.workspace_id, user, roles)
  return CardScope(card=card, column=column, board=board, member=member)


async def comment_access(
  db: AsyncSession, comment_id: str, user: User, *, roles: Iterable[Role | str] | None = None
) -> CommentScope:
  res = await db.execute(
    select(Comment, Card, Column, Board)
    .join(Card, Card.id == Comment.card_id)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .where(Comment.id == comment_id)
  )
  row = res.one_or_none()
  if not row:
    raise NotFound("Comment not found")
  comment, card, column, board = row
  member = await _check(db, board.workspace_id, user, roles)
  return CommentScope(comment=comment, card=card, column=column, board=board, member=member)


async def label_access(db: AsyncSession, label_id: str, user: User, *, roles: Iterable[Role | str] | None = None) -> LabelScope:
  res = await db.execute(select(Label, Board).join(Board, Board.id == Label.board_id).where(Label.id == label_id))
  row = res.one_or_none()
  if not row:
    raise NotFound("Label not found")
  label, board = row
  member = await _check(db, board.workspace_id, user, roles)
  return LabelScope(label=label, board=board, member=member)


async def attachment_access(
  db: AsyncSession, attachment_id: str, user: User, *, roles: Iterable[Role | str] | None = None
) -> AttachmentScope:
  res = await db.execute(
    select(Attachment, Card, Column, Board)
    .join(Card, Card.id == Attachment.card_id)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .where(Attachment.id == attachment_id)
  )
  row = res.one_or_none()
  if not row:
    raise NotFound("Attachment not found")
  attachment, card, column, board = row
  member = await _check(db, board.workspace_id, user, roles)
  return AttachmentScope(attachment=attachment, card=card, column=column, board=board, member=member)
