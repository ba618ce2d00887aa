from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import MANAGERS, require_role, workspace_access
from kanban_api.errors import BadRequest, Conflict, Forbidden, NotFound
from kanban_api.models import InvitationStatus, Role, User, Workspace, WorkspaceInvitation, WorkspaceMember
from kanban_api.notifications.service import NotificationType, create_notification

INVITABLE_ROLES = (Role.ADMIN, Role.MEMBER)


async def create_workspace(db: AsyncSession, user: User, name: str, description: str | None = None) -> tuple[Workspace, WorkspaceMember]:
  ws = Workspace(name=name, description=description)
  db.add(ws)
  await db.flush()
  owner = WorkspaceMember(workspace_id=ws.id, user_id=user.id, role=Role.OWNER.value)
  db.add(owner)
  await db.flush()
  return ws, owner


async def invite_member(
  db: AsyncSession,
  workspace_id: str,
  inviter: User,
  email: str,
  role: Role | str = Role.MEMBER,
) -> WorkspaceInvitation:
  scope = await workspace_access(db, workspace_id, inviter, roles=MANAGERS)
  role = Role(role)
  if role not in INVITABLE_ROLES:
    raise BadRequest("Invitation role must be ADMIN or MEMBER")

  res = await db.execute(select(User).where(User.email == email.strip().lower()))
  invited = res.scalar_one_or_none()
  if not invited:
    raise NotFound("User not found")

  res = await db.execute(
    select(WorkspaceMember.id).where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == invited.id)
  )
  if res.scalar_one_or_none():
    raise Conflict("User is already a member")

  res = await db.execute(
    select(WorkspaceInvitation.id).where(
      WorkspaceInvitation.workspace_id == workspace_id,
      WorkspaceInvitation.invited_user_id == invited.id,
      WorkspaceInvitation.status == InvitationStatus.PENDING.value,
    )
  )
  if res.scalar_one_or_none():
    raise Conflict("Invitation already sent")

  inv = WorkspaceInvitation(
    workspace_id=workspace_id,
    invited_user_id=invited.id,
    invited_by_id=inviter.id,
    role=role.value,
    status=InvitationStatus.PENDING.value,
  )
  db.add(inv)
  try:
    await db.flush()
  except IntegrityError:
    # Lost a race with a concurrent invite for the same user.
    await db.rollback()
    raise Conflict("Invitation already sent")

  await create_notification(
    db,
    user_id=invited.id,
    type=NotificationType.WORKSPACE_INVITATION,
    message=f'You have been invited to the "{scope.workspace.name}" workspace',
    workspace_invitation_id=inv.id,
  )
  return inv


async def _pending_for(db: AsyncSession, invitation_id: str, user: User) -> WorkspaceInvitation:
  res = await db.execute(select(WorkspaceInvitation).where(WorkspaceInvitation.id == invitation_id))
  inv = res.scalar_one_or_none()
  if not inv:
    raise NotFound("Invitation not found")
  if inv.invited_user_id != user.id:
    raise Forbidden("This invitation is not for you")
  if inv.status != InvitationStatus.PENDING.value:
    raise Conflict("Invitation already responded")
  return inv


async def accept_invitation(db: AsyncSession, invitation_id: str, user: User) -> WorkspaceMember:
  """
  PENDING -> ACCEPTED, and the membership row, in one unit of work.

  Nothing is flushed until both changes are staged, so a failure leaves the
  invitation PENDING and no member behind.
  """
  inv = await _pending_for(db, invitation_id, user)
  inv.status = InvitationStatus.ACCEPTED.value
  inv.responded_at = datetime.now(timezone.utc)
  member = WorkspaceMember(workspace_id=inv.workspace_id, user_id=user.id, role=inv.role)
  db.add(member)
  try:
    await db.flush()
  except IntegrityError:
    await db.rollback()
    raise Conflict("User is already a member")
  return member


async def reject_invitation(db: AsyncSession, invitation_id: str, user: User) -> WorkspaceInvitation:
  inv = await _pending_for(db, invitation_id, user)
  inv.status = InvitationStatus.REJECTED.value
  inv.responded_at = datetime.now(timezone.utc)
  await db.flush()
  return inv


async def remove_member(db: AsyncSession, workspace_id: str, target_user_id: str, remover: User) -> None:
  await require_role(db, workspace_id, remover.id, MANAGERS)
  res = await db.execute(
    select(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == target_user_id)
  )
  member = res.scalar_one_or_none()
  if not member:
    raise NotFound("Member not found")
  if member.role == Role.OWNER.value:
    raise Forbidden("Cannot remove workspace owner")
  await db.delete(member)
  await db.flush()


async def list_pending_invitations(db: AsyncSession, user: User) -> list[tuple[WorkspaceInvitation, Workspace, User | None]]:
  res = await db.execute(
    select(WorkspaceInvitation, Workspace, User)
    .join(Workspace, Workspace.id == WorkspaceInvitation.workspace_id)
    .outerjoin(User, User.id == WorkspaceInvitation.invited_by_id)
    .where(
      WorkspaceInvitation.invited_user_id == user.id,
      WorkspaceInvitation.status == InvitationStatus.PENDING.value,
    )
    .order_by(WorkspaceInvitation.created_at.desc())
  )
  return [(inv, ws, inviter) for inv, ws, inviter in res.all()]
