from __future__ import annotations

import enum
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.config import settings
from kanban_api.errors import NotFound
from kanban_api.models import Card, Column, Notification, User, Workspace, WorkspaceInvitation

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"@([a-f0-9-]{36})")


class NotificationType(str, enum.Enum):
  ASSIGNED = "ASSIGNED"
  MENTIONED = "MENTIONED"
  COMMENT_ADDED = "COMMENT_ADDED"
  DUE_DATE_SOON = "DUE_DATE_SOON"
  CARD_MOVED = "CARD_MOVED"
  WORKSPACE_INVITATION = "WORKSPACE_INVITATION"


def parse_mentions(content: str | None) -> list[str]:
  """User ids referenced as @<uuid>, first occurrence order, no duplicates."""
  seen: list[str] = []
  for m in MENTION_RE.finditer(content or ""):
    uid = m.group(1)
    if uid not in seen:
      seen.append(uid)
  return seen


async def create_notification(
  db: AsyncSession,
  *,
  user_id: str,
  type: NotificationType | str,
  message: str,
  card_id: str | None = None,
  workspace_invitation_id: str | None = None,
) -> Notification:
  n = Notification(
    user_id=user_id,
    type=NotificationType(type).value,
    message=message,
    card_id=card_id,
    workspace_invitation_id=workspace_invitation_id,
    read=False,
  )
  db.add(n)
  return n


async def notify_comment(
  db: AsyncSession,
  *,
  card: Card,
  author: User,
  mentions: list[str],
) -> list[Notification]:
  created: list[Notification] = []
  targets = [uid for uid in mentions if uid != author.id]
  if targets:
    # UUID-shaped tokens that match no account stay on the comment only.
    res = await db.execute(select(User.id).where(User.id.in_(targets)))
    known = set(res.scalars().all())
    for uid in targets:
      if uid not in known:
        continue
      created.append(
        await create_notification(
          db,
          user_id=uid,
          type=NotificationType.MENTIONED,
          message=f'{author.name} mentioned you in a comment on "{card.title}"',
          card_id=card.id,
        )
      )

  if card.assignee_id and card.assignee_id != author.id and card.assignee_id not in mentions:
    created.append(
      await create_notification(
        db,
        user_id=card.assignee_id,
        type=NotificationType.COMMENT_ADDED,
        message=f'{author.name} commented on "{card.title}"',
        card_id=card.id,
      )
    )
  return created


async def notify_assigned(db: AsyncSession, *, card: Card, assignee_id: str, actor: User) -> Notification | None:
  if assignee_id == actor.id:
    return None
  return await create_notification(
    db,
    user_id=assignee_id,
    type=NotificationType.ASSIGNED,
    message=f'{actor.name} assigned you to "{card.title}"',
    card_id=card.id,
  )


async def notify_card_moved(db: AsyncSession, *, card: Card, to_column: Column, actor: User) -> Notification | None:
  if not card.assignee_id or card.assignee_id == actor.id:
    return None
  return await create_notification(
    db,
    user_id=card.assignee_id,
    type=NotificationType.CARD_MOVED,
    message=f'{actor.name} moved "{card.title}" to {to_column.title}',
    card_id=card.id,
  )


def _notification_out(n: Notification, card_row: Any, inv_row: Any) -> dict[str, Any]:
  card = None
  if card_row is not None:
    card_id, card_title, board_id = card_row
    card = {"id": card_id, "title": card_title, "column": {"boardId": board_id}, "boardId": board_id}
  invitation = None
  if inv_row is not None:
    inv, ws = inv_row
    invitation = {
      "id": inv.id,
      "status": inv.status,
      "role": inv.role,
      "workspace": {"id": ws.id, "name": ws.name, "description": ws.description},
    }
  return {
    "id": n.id,
    "userId": n.user_id,
    "type": n.type,
    "message": n.message,
    "cardId": n.card_id,
    "workspaceInvitationId": n.workspace_invitation_id,
    "read": n.read,
    "createdAt": n.created_at,
    "card": card,
    "workspaceInvitation": invitation,
  }


async def get_user_notifications(db: AsyncSession, user_id: str, *, unread_only: bool = False) -> list[dict[str, Any]]:
  stmt = (
    select(Notification, Card.id, Card.title, Column.board_id, WorkspaceInvitation, Workspace)
    .outerjoin(Card, Card.id == Notification.card_id)
    .outerjoin(Column, Column.id == Card.column_id)
    .outerjoin(WorkspaceInvitation, WorkspaceInvitation.id == Notification.workspace_invitation_id)
    .outerjoin(Workspace, Workspace.id == WorkspaceInvitation.workspace_id)
    .where(Notification.user_id == user_id)
  )
  if unread_only:
    stmt = stmt.where(Notification.read.is_(False))
  stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(settings.notification_list_limit)
  res = await db.execute(stmt)
  out: list[dict[str, Any]] = []
  for n, card_id, card_title, board_id, inv, ws in res.all():
    card_row = (card_id, card_title, board_id) if card_id else None
    inv_row = (inv, ws) if inv is not None and ws is not None else None
    out.append(_notification_out(n, card_row, inv_row))
  return out


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
  res = await db.execute(select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.read.is_(False)))
  return int(res.scalar_one() or 0)


async def mark_as_read(db: AsyncSession, notification_id: str, user_id: str) -> Notification:
  res = await db.execute(select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id))
  n = res.scalar_one_or_none()
  if not n:
    raise NotFound("Notification not found")
  n.read = True
  return n


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
  res = await db.execute(
    update(Notification).where(Notification.user_id == user_id, Notification.read.is_(False)).values(read=True)
  )
  return int(res.rowcount or 0)


async def delete_notification(db: AsyncSession, notification_id: str, user_id: str) -> None:
  res = await db.execute(delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id))
  if not res.rowcount:
    raise NotFound("Notification not found")


async def dispatch_due_soon_once(db: AsyncSession, *, now: datetime | None = None) -> int:
  """
  Notify assignees about open cards whose due date falls within the look-ahead window.

  Each (assignee, card) pair is notified at most once; an existing DUE_DATE_SOON
  notification for the pair suppresses further ones.
  """
  now = now or datetime.now(timezone.utc)
  horizon = now + timedelta(hours=int(settings.due_soon_hours))

  already = exists().where(
    and_(
      Notification.card_id == Card.id,
      Notification.user_id == Card.assignee_id,
      Notification.type == NotificationType.DUE_DATE_SOON.value,
    )
  )
  res = await db.execute(
    select(Card)
    .where(
      Card.assignee_id.is_not(None),
      Card.due_date.is_not(None),
      Card.due_date >= now,
      Card.due_date <= horizon,
      Card.is_archived.is_(False),
      Card.is_completed.is_(False),
      ~already,
    )
    .order_by(Card.due_date.asc())
  )
  cards = res.scalars().all()
  for c in cards:
    await create_notification(
      db,
      user_id=c.assignee_id,
      type=NotificationType.DUE_DATE_SOON,
      message=f'"{c.title}" is due {c.due_date.strftime("%Y-%m-%d %H:%M")} UTC',
      card_id=c.id,
    )
  if cards:
    await db.commit()
    logger.info("due-soon sweep notified %d card(s)", len(cards))
  return len(cards)
