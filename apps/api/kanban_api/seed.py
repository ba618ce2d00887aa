from __future__ import annotations

import asyncio
import os
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import select

from kanban_api.activity import ActivityType, CardCreatedDetails, log_activity
from kanban_api.db import SessionLocal
from kanban_api.models import Board, Card, Column, Comment, Role, User, Workspace, WorkspaceMember
from kanban_api.security import hash_password


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def _ensure_user(db, email: str, name: str, env_key: str, boot_lines: list[str]) -> User:
  res = await db.execute(select(User).where(User.email == email))
  user = res.scalar_one_or_none()
  if user:
    return user
  password, generated = _bootstrap_password(env_key)
  user = User(email=email, name=name, password_hash=hash_password(password), avatar_url=None)
  db.add(user)
  boot_lines.append(f"{email}={password} (generated={str(generated).lower()})")
  return user


async def seed() -> None:
  async with SessionLocal() as db:
    boot_lines: list[str] = []
    owner = await _ensure_user(db, "owner@kanban.local", "Owner", "SEED_OWNER_PASSWORD", boot_lines)
    member = await _ensure_user(db, "member@kanban.local", "Member", "SEED_MEMBER_PASSWORD", boot_lines)
    await db.flush()

    if os.getenv("SEED_DEMO_BOARD", "").strip().lower() in ("1", "true", "yes", "y"):
      # Idempotent by workspace name + owner membership.
      ws_name = "Demo Workspace"
      wres = await db.execute(
        select(Workspace)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(Workspace.name == ws_name, WorkspaceMember.user_id == owner.id, WorkspaceMember.role == Role.OWNER.value)
      )
      ws = wres.scalars().first()
      if not ws:
        ws = Workspace(name=ws_name, description="Sample workspace")
        db.add(ws)
        await db.flush()
        db.add(WorkspaceMember(workspace_id=ws.id, user_id=owner.id, role=Role.OWNER.value))
        db.add(WorkspaceMember(workspace_id=ws.id, user_id=member.id, role=Role.MEMBER.value))

        board = Board(name="Demo Board", description=None, workspace_id=ws.id)
        db.add(board)
        await db.flush()
        columns = []
        for idx, title in enumerate(["To Do", "In Progress", "Done"]):
          col = Column(board_id=board.id, title=title, order=idx)
          db.add(col)
          columns.append(col)
        await db.flush()

        now = datetime.now(timezone.utc)
        samples = [
          (columns[0], "Welcome", "Open a card to see comments, checklist and activity.", ["demo"]),
          (columns[1], "Try moving cards", "Drag a card to another column.", ["demo"]),
          (columns[2], "Done example", "A finished card.", ["done", "demo"]),
        ]
        for idx, (col, title, desc, labels) in enumerate(samples):
          card = Card(
            column_id=col.id,
            title=title,
            description=desc,
            order=0,
            creator_id=owner.id,
            assignee_id=member.id,
            due_date=now + timedelta(days=idx + 1),
            labels=labels,
            is_completed=(col is columns[2]),
          )
          db.add(card)
          await db.flush()
          await log_activity(
            db, card_id=card.id, user_id=owner.id, action_type=ActivityType.CREATE_CARD, details=CardCreatedDetails(title=title)
          )
          if title == "Welcome":
            db.add(Comment(card_id=card.id, author_id=owner.id, content="Mention someone with @<user id>.", mentions=[]))
            await log_activity(db, card_id=card.id, user_id=owner.id, action_type=ActivityType.ADD_COMMENT)

    await db.commit()
    if boot_lines:
      out_dir = Path(os.getenv("BOOTSTRAP_CREDENTIALS_DIR", "data/seed"))
      out_dir.mkdir(parents=True, exist_ok=True)
      out_file = out_dir / "bootstrap_credentials.txt"
      stamp = datetime.now(timezone.utc).isoformat()
      out_file.write_text(f"[{stamp}]\n" + "\n".join(boot_lines) + "\n", encoding="utf-8")
      print("Kanban seed credentials created:")
      for ln in boot_lines:
        print(f"  {ln}")
      print(f"Saved to {out_file}")


def main() -> None:
  asyncio.run(seed())


if __name__ == "__main__":
  main()
