from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def next_order(db: AsyncSession, order_col: Any, parent_col: Any, parent_id: str) -> int:
  """Append position among siblings: max + 1, or 0 for the first one."""
  res = await db.execute(select(func.max(order_col)).where(parent_col == parent_id))
  max_order = res.scalar_one()
  return (max_order + 1) if max_order is not None else 0


async def order_for_create(db: AsyncSession, order_col: Any, parent_col: Any, parent_id: str, explicit: int | None) -> int:
  # Explicit positions are stored as given; siblings are never renumbered.
  if explicit is not None:
    return explicit
  return await next_order(db, order_col, parent_col, parent_id)


def sibling_order_by(model: Any) -> tuple:
  # Duplicate orders are allowed; fall back to insertion order.
  return (model.order.asc(), model.created_at.asc(), model.id.asc())


def move_card(card: Any, *, column_id: str, order: int) -> bool:
  """Re-parent and position a card as requested. Returns True when the column changed."""
  changed_column = card.column_id != column_id
  card.column_id = column_id
  card.order = order
  return changed_column
