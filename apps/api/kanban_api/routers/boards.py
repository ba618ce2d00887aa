from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import MANAGERS, board_access, workspace_access
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest
from kanban_api.models import Board, Column, User
from kanban_api.ordering import sibling_order_by
from kanban_api.projections import board_out, column_out, columns_with_cards
from kanban_api.schemas import BoardCreateIn, BoardOut, BoardUpdateIn, MessageOut

router = APIRouter(prefix="/boards", tags=["boards"])


@router.post("", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_board(payload: BoardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  await workspace_access(db, payload.workspaceId, user)
  b = Board(name=payload.name, description=payload.description, workspace_id=payload.workspaceId)
  db.add(b)
  await db.commit()
  return board_out(b)


@router.get("", response_model=list[BoardOut])
async def list_boards(
  workspaceId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[BoardOut]:
  if not workspaceId:
    raise BadRequest("workspaceId is required")
  await workspace_access(db, workspaceId, user)
  res = await db.execute(select(Board).where(Board.workspace_id == workspaceId).order_by(Board.created_at.desc(), Board.id.desc()))
  boards = list(res.scalars().all())
  columns: dict[str, list[Column]] = {}
  if boards:
    cres = await db.execute(select(Column).where(Column.board_id.in_([b.id for b in boards])).order_by(*sibling_order_by(Column)))
    for col in cres.scalars().all():
      columns.setdefault(col.board_id, []).append(col)
  return [board_out(b, [column_out(c) for c in columns.get(b.id, [])]) for b in boards]


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  scope = await board_access(db, board_id, user)
  res = await db.execute(select(Column).where(Column.board_id == board_id).order_by(*sibling_order_by(Column)))
  return board_out(scope.board, await columns_with_cards(db, list(res.scalars().all())))


@router.patch("/{board_id}", response_model=BoardOut)
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardOut:
  scope = await board_access(db, board_id, user)
  b = scope.board
  if payload.name is not None:
    b.name = payload.name
  if "description" in payload.model_fields_set:
    b.description = payload.description
  await db.commit()
  return board_out(b)


@router.delete("/{board_id}", response_model=MessageOut)
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await board_access(db, board_id, user, roles=MANAGERS)
  await db.delete(scope.board)
  await db.commit()
  return MessageOut(message="Board deleted successfully")
