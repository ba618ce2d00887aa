from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.deps import get_current_user, get_db
from kanban_api.models import Board, Card, Column, User, Workspace, WorkspaceMember
from kanban_api.projections import user_brief, users_by_id

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

RECENT_LIMIT = 10


def _rate(done: int, total: int) -> int:
  return round(done / total * 100) if total else 0


async def build_statistics(db: AsyncSession, user: User, *, now: datetime | None = None) -> dict[str, Any]:
  now = now or datetime.now(timezone.utc)
  today = now.replace(hour=0, minute=0, second=0, microsecond=0)
  end_of_week = today + timedelta(days=7)

  wres = await db.execute(
    select(Workspace)
    .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
    .where(WorkspaceMember.user_id == user.id)
    .order_by(Workspace.created_at.asc())
  )
  workspaces = list(wres.scalars().all())
  ws_ids = [w.id for w in workspaces]

  board_count = 0
  rows: list[tuple[Card, Column, Board]] = []
  if ws_ids:
    bres = await db.execute(select(Board.id).where(Board.workspace_id.in_(ws_ids)))
    board_count = len(bres.scalars().all())
    cres = await db.execute(
      select(Card, Column, Board)
      .join(Column, Column.id == Card.column_id)
      .join(Board, Board.id == Column.board_id)
      .where(Board.workspace_id.in_(ws_ids))
    )
    rows = [(c, col, b) for c, col, b in cres.all()]

  cards = [c for c, _, _ in rows]
  mine = [c for c in cards if c.assignee_id == user.id]
  completed = sum(1 for c in cards if c.is_completed)
  my_completed = sum(1 for c in mine if c.is_completed)

  per_ws: dict[str, list[Card]] = {w.id: [] for w in workspaces}
  for c, _, b in rows:
    per_ws[b.workspace_id].append(c)
  workspace_stats = []
  for w in workspaces:
    ws_cards = per_ws[w.id]
    ws_done = sum(1 for c in ws_cards if c.is_completed)
    workspace_stats.append(
      {"id": w.id, "name": w.name, "totalCards": len(ws_cards), "completedCards": ws_done, "completionRate": _rate(ws_done, len(ws_cards))}
    )

  dated = [c for c in cards if c.due_date is not None]
  due_today = sum(1 for c in dated if c.due_date.date() == today.date())
  due_this_week = sum(1 for c in dated if today <= c.due_date <= end_of_week)
  overdue = sum(1 for c in dated if c.due_date < today)

  recent = sorted(rows, key=lambda r: (r[0].updated_at, r[0].id), reverse=True)[:RECENT_LIMIT]
  users = await users_by_id(db, [c.assignee_id for c, _, _ in recent])

  return {
    "overview": {
      "totalWorkspaces": len(workspaces),
      "totalBoards": board_count,
      "totalCards": len(cards),
      "completedCards": completed,
      "completionRate": _rate(completed, len(cards)),
      "myCardsCount": len(mine),
      "myCompletedCards": my_completed,
      "myCompletionRate": _rate(my_completed, len(mine)),
    },
    "workspaceStats": workspace_stats,
    "dueDates": {"dueToday": due_today, "dueThisWeek": due_this_week, "overdue": overdue},
    "recentCards": [
      {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "dueDate": c.due_date,
        "labels": list(c.labels or []),
        "assignee": user_brief(users.get(c.assignee_id)) if c.assignee_id else None,
        "column": {"id": col.id, "title": col.title, "board": {"id": b.id, "name": b.name}},
        "updatedAt": c.updated_at,
        "isCompleted": c.is_completed,
      }
      for c, col, b in recent
    ],
    "myCards": [{"id": c.id, "title": c.title, "dueDate": c.due_date, "labels": list(c.labels or [])} for c in mine[:RECENT_LIMIT]],
  }


@router.get("/statistics")
async def statistics(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  return await build_statistics(db, user)
