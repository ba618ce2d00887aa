from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def _as_utc(value: object) -> object:
  if isinstance(value, datetime) and value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  if isinstance(value, datetime):
    return value.astimezone(timezone.utc)
  return value


class UserBrief(BaseModel):
  id: str
  name: str
  email: str
  avatarUrl: str | None = None


class RegisterIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  name: str = Field(min_length=1, max_length=120)
  password: str = Field(min_length=8, max_length=128)


class LoginIn(BaseModel):
  email: str
  password: str


class MessageOut(BaseModel):
  message: str


class CountOut(BaseModel):
  count: int


# Workspaces


class WorkspaceCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  description: str | None = None


class WorkspaceUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = None


class WorkspaceBrief(BaseModel):
  id: str
  name: str
  description: str | None = None


class BoardBrief(BaseModel):
  id: str
  name: str


class MemberOut(BaseModel):
  id: str
  userId: str
  workspaceId: str
  role: str
  joinedAt: datetime
  user: UserBrief


class WorkspaceOut(BaseModel):
  id: str
  name: str
  description: str | None = None
  createdAt: datetime
  updatedAt: datetime
  members: list[MemberOut] = Field(default_factory=list)
  boards: list[BoardBrief] = Field(default_factory=list)


class InviteIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  role: Literal["ADMIN", "MEMBER"] = "MEMBER"


class InvitationOut(BaseModel):
  id: str
  workspaceId: str
  invitedUserId: str
  invitedById: str | None = None
  role: str
  status: str
  createdAt: datetime
  respondedAt: datetime | None = None
  workspace: WorkspaceBrief | None = None
  invitedBy: UserBrief | None = None


# Boards, columns, cards


class BoardCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  description: str | None = None
  workspaceId: str


class BoardUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = None


class ColumnCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)
  boardId: str
  order: int | None = Field(default=None, ge=0)


class ColumnUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  order: int | None = Field(default=None, ge=0)


class CardCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=500)
  description: str | None = None
  columnId: str
  order: int | None = Field(default=None, ge=0)
  assigneeId: str | None = None
  dueDate: datetime | None = None
  labels: list[str] = Field(default_factory=list)

  @field_validator("dueDate")
  @classmethod
  def _due_utc(cls, v: object) -> object:
    return _as_utc(v)


class CardUpdateIn(BaseModel):
  """Partial update; an explicit null clears assigneeId or dueDate."""

  title: str | None = Field(default=None, min_length=1, max_length=500)
  description: str | None = None
  order: int | None = Field(default=None, ge=0)
  assigneeId: str | None = None
  dueDate: datetime | None = None
  labels: list[str] | None = None

  @field_validator("dueDate")
  @classmethod
  def _due_utc(cls, v: object) -> object:
    return _as_utc(v)


class CardMoveIn(BaseModel):
  columnId: str
  order: int = Field(ge=0)


class LabelOut(BaseModel):
  id: str
  boardId: str
  name: str
  color: str
  createdAt: datetime


class ChecklistItemOut(BaseModel):
  id: str
  cardId: str
  content: str
  isCompleted: bool
  position: int
  createdAt: datetime


class ChecklistCreateIn(BaseModel):
  content: str = Field(min_length=1, max_length=2000)


class ChecklistUpdateIn(BaseModel):
  content: str | None = Field(default=None, min_length=1, max_length=2000)
  isCompleted: bool | None = None


class CardOut(BaseModel):
  id: str
  columnId: str
  title: str
  description: str | None = None
  order: int
  assigneeId: str | None = None
  creatorId: str
  dueDate: datetime | None = None
  labels: list[str] = Field(default_factory=list)
  isCompleted: bool
  isArchived: bool
  createdAt: datetime
  updatedAt: datetime
  assignee: UserBrief | None = None
  creator: UserBrief | None = None
  boardLabels: list[LabelOut] = Field(default_factory=list)


class ColumnBrief(BaseModel):
  id: str
  title: str
  boardId: str


class CommentOut(BaseModel):
  id: str
  cardId: str
  authorId: str
  content: str
  mentions: list[str] = Field(default_factory=list)
  createdAt: datetime
  updatedAt: datetime
  author: UserBrief | None = None


class CardDetailOut(CardOut):
  column: ColumnBrief
  comments: list[CommentOut] = Field(default_factory=list)
  checklist: list[ChecklistItemOut] = Field(default_factory=list)


class ColumnOut(BaseModel):
  id: str
  boardId: str
  title: str
  order: int
  createdAt: datetime
  updatedAt: datetime
  cards: list[CardOut] = Field(default_factory=list)


class BoardOut(BaseModel):
  id: str
  name: str
  description: str | None = None
  workspaceId: str
  createdAt: datetime
  updatedAt: datetime
  columns: list[ColumnOut] = Field(default_factory=list)


# Comments, labels, attachments, activity


class CommentCreateIn(BaseModel):
  cardId: str
  content: str = Field(min_length=1, max_length=10000)


class CommentUpdateIn(BaseModel):
  content: str = Field(min_length=1, max_length=10000)


class LabelCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=100)
  color: str = Field(pattern=HEX_COLOR_PATTERN)
  boardId: str


class LabelUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=100)
  color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)


class AttachmentOut(BaseModel):
  id: str
  cardId: str
  filename: str
  mimeType: str
  size: int
  url: str
  createdAt: datetime
  uploadedBy: UserBrief | None = None


class ActivityOut(BaseModel):
  id: str
  cardId: str
  userId: str
  actionType: str
  details: dict[str, Any] = Field(default_factory=dict)
  createdAt: datetime
  user: UserBrief | None = None
