from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import MANAGERS, workspace_access
from kanban_api.deps import get_current_user, get_db
from kanban_api.models import Board, Role, User, Workspace, WorkspaceMember
from kanban_api.projections import invitation_out, member_out
from kanban_api.realtime import hub
from kanban_api.schemas import (
  BoardBrief,
  InvitationOut,
  InviteIn,
  MemberOut,
  MessageOut,
  WorkspaceCreateIn,
  WorkspaceOut,
  WorkspaceUpdateIn,
)
from kanban_api.workspaces.service import (
  accept_invitation,
  create_workspace,
  invite_member,
  list_pending_invitations,
  reject_invitation,
  remove_member,
)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


async def _workspaces_out(db: AsyncSession, workspaces: list[Workspace]) -> list[WorkspaceOut]:
  ids = [w.id for w in workspaces]
  members: dict[str, list[MemberOut]] = {}
  boards: dict[str, list[BoardBrief]] = {}
  if ids:
    mres = await db.execute(
      select(WorkspaceMember, User)
      .join(User, User.id == WorkspaceMember.user_id)
      .where(WorkspaceMember.workspace_id.in_(ids))
      .order_by(WorkspaceMember.joined_at.asc())
    )
    for m, u in mres.all():
      members.setdefault(m.workspace_id, []).append(member_out(m, u))
    bres = await db.execute(select(Board).where(Board.workspace_id.in_(ids)).order_by(Board.created_at.desc()))
    for b in bres.scalars().all():
      boards.setdefault(b.workspace_id, []).append(BoardBrief(id=b.id, name=b.name))
  return [
    WorkspaceOut(
      id=w.id,
      name=w.name,
      description=w.description,
      createdAt=w.created_at,
      updatedAt=w.updated_at,
      members=members.get(w.id, []),
      boards=boards.get(w.id, []),
    )
    for w in workspaces
  ]


@router.post("", response_model=WorkspaceOut, status_code=status.HTTP_201_CREATED)
async def create(payload: WorkspaceCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  ws, _owner = await create_workspace(db, user, payload.name, payload.description)
  await db.commit()
  return (await _workspaces_out(db, [ws]))[0]


@router.get("", response_model=list[WorkspaceOut])
async def list_workspaces(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[WorkspaceOut]:
  res = await db.execute(
    select(Workspace)
    .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
    .where(WorkspaceMember.user_id == user.id)
    .order_by(Workspace.created_at.desc())
  )
  return await _workspaces_out(db, list(res.scalars().all()))


@router.get("/invitations/pending", response_model=list[InvitationOut])
async def pending_invitations(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[InvitationOut]:
  rows = await list_pending_invitations(db, user)
  return [invitation_out(inv, ws, inviter) for inv, ws, inviter in rows]


@router.post("/invitations/{invitation_id}/accept", response_model=MemberOut)
async def accept(invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MemberOut:
  member = await accept_invitation(db, invitation_id, user)
  await db.commit()
  return member_out(member, user)


@router.post("/invitations/{invitation_id}/reject", response_model=MessageOut)
async def reject(invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  await reject_invitation(db, invitation_id, user)
  await db.commit()
  return MessageOut(message="Invitation rejected")


@router.get("/{workspace_id}", response_model=WorkspaceOut)
async def get_workspace(workspace_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  scope = await workspace_access(db, workspace_id, user)
  return (await _workspaces_out(db, [scope.workspace]))[0]


@router.patch("/{workspace_id}", response_model=WorkspaceOut)
async def update_workspace(
  workspace_id: str,
  payload: WorkspaceUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> WorkspaceOut:
  scope = await workspace_access(db, workspace_id, user, roles=MANAGERS)
  ws = scope.workspace
  if payload.name is not None:
    ws.name = payload.name
  if "description" in payload.model_fields_set:
    ws.description = payload.description
  await db.commit()
  return (await _workspaces_out(db, [ws]))[0]


@router.delete("/{workspace_id}", response_model=MessageOut)
async def delete_workspace(workspace_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await workspace_access(db, workspace_id, user, roles=(Role.OWNER,))
  await db.delete(scope.workspace)
  await db.commit()
  return MessageOut(message="Workspace deleted successfully")


@router.post("/{workspace_id}/invite", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def invite(
  workspace_id: str,
  payload: InviteIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InvitationOut:
  inv = await invite_member(db, workspace_id, user, payload.email, payload.role)
  await db.commit()
  scope = await workspace_access(db, workspace_id, user)
  return invitation_out(inv, scope.workspace, user)


@router.delete("/{workspace_id}/members/{member_user_id}", response_model=MessageOut)
async def remove(
  workspace_id: str,
  member_user_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MessageOut:
  await remove_member(db, workspace_id, member_user_id, user)
  await db.commit()
  board_ids = (await db.execute(select(Board.id).where(Board.workspace_id == workspace_id))).scalars().all()
  await hub.disconnect_user(board_ids, member_user_id)
  return MessageOut(message="Member removed successfully")
