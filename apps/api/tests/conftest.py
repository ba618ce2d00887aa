from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_TMP = Path(tempfile.mkdtemp(prefix="kanban_test_"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'kanban_test.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_TMP / "uploads"))
os.environ.setdefault("DUE_SOON_SCAN_ENABLED", "false")

from kanban_api.config import settings
from kanban_api.db import SessionLocal, engine
from kanban_api.main import app
from kanban_api.models import Base, User
from kanban_api.rate_limit import limiter
from kanban_api.realtime import hub

PASSWORD = "password123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("auth:")
  hub.clear()
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. kanban_test)."
    )
  await _reset_db()
  yield
  await engine.dispose()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def register(client: AsyncClient, email: str, name: str | None = None, password: str = PASSWORD) -> dict:
  res = await client.post("/auth/register", json={"email": email, "name": name or email.split("@")[0], "password": password})
  assert res.status_code == 201, res.text
  assert "kb_session=" in (res.headers.get("set-cookie") or "")
  return res.json()


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  return res.json()


async def user_id_for(email: str) -> str:
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.email == email))
    return res.scalar_one().id


async def make_board(client: AsyncClient, *, columns: tuple[str, ...] = ("To Do", "Done")) -> dict:
  """Workspace + board + columns owned by the currently logged in user."""
  ws = (await client.post("/workspaces", json={"name": "WS"})).json()
  board = (await client.post("/boards", json={"name": "Board", "workspaceId": ws["id"]})).json()
  cols = []
  for title in columns:
    r = await client.post("/columns", json={"title": title, "boardId": board["id"]})
    assert r.status_code == 201, r.text
    cols.append(r.json())
  return {"workspace": ws, "board": board, "columns": cols}


async def invite_and_accept(client: AsyncClient, *, owner_email: str, workspace_id: str, email: str, role: str = "MEMBER") -> None:
  """Leaves the client logged in as the invited user."""
  await login(client, owner_email)
  inv = await client.post(f"/workspaces/{workspace_id}/invite", json={"email": email, "role": role})
  assert inv.status_code == 201, inv.text
  await login(client, email)
  acc = await client.post(f"/workspaces/invitations/{inv.json()['id']}/accept")
  assert acc.status_code == 200, acc.text
