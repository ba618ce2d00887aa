from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import board_access, column_access
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest
from kanban_api.models import Column, User
from kanban_api.ordering import order_for_create, sibling_order_by
from kanban_api.projections import columns_with_cards
from kanban_api.realtime import hub
from kanban_api.schemas import ColumnCreateIn, ColumnOut, ColumnUpdateIn, MessageOut

router = APIRouter(prefix="/columns", tags=["columns"])


async def _column_with_cards(db: AsyncSession, col: Column) -> ColumnOut:
  return (await columns_with_cards(db, [col]))[0]


@router.post("", response_model=ColumnOut, status_code=status.HTTP_201_CREATED)
async def create_column(payload: ColumnCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ColumnOut:
  await board_access(db, payload.boardId, user)
  order = await order_for_create(db, Column.order, Column.board_id, payload.boardId, payload.order)
  col = Column(title=payload.title, board_id=payload.boardId, order=order)
  db.add(col)
  await db.commit()
  out = await _column_with_cards(db, col)
  await hub.emit(col.board_id, "columnCreated", out)
  return out


@router.get("", response_model=list[ColumnOut])
async def list_columns(
  boardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ColumnOut]:
  if not boardId:
    raise BadRequest("boardId is required")
  await board_access(db, boardId, user)
  res = await db.execute(select(Column).where(Column.board_id == boardId).order_by(*sibling_order_by(Column)))
  return await columns_with_cards(db, list(res.scalars().all()))


@router.get("/{column_id}", response_model=ColumnOut)
async def get_column(column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ColumnOut:
  scope = await column_access(db, column_id, user)
  return await _column_with_cards(db, scope.column)


@router.patch("/{column_id}", response_model=ColumnOut)
async def update_column(
  column_id: str,
  payload: ColumnUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  scope = await column_access(db, column_id, user)
  col = scope.column
  if payload.title is not None:
    col.title = payload.title
  if payload.order is not None:
    col.order = payload.order
  await db.commit()
  out = await _column_with_cards(db, col)
  await hub.emit(col.board_id, "columnUpdated", out)
  return out


@router.delete("/{column_id}", response_model=MessageOut)
async def delete_column(column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await column_access(db, column_id, user)
  board_id = scope.board.id
  await db.delete(scope.column)
  await db.commit()
  await hub.emit(board_id, "columnDeleted", {"columnId": column_id})
  return MessageOut(message="Column deleted successfully")
