from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from conftest import invite_and_accept, login, make_board, register, user_id_for
from kanban_api.notifications.service import parse_mentions


@pytest.mark.anyio
async def test_parse_mentions_dedupes_in_order() -> None:
  a = str(uuid.uuid4())
  b = str(uuid.uuid4())
  text = f"hey @{b} and @{a}, also @{b} again; @not-a-uuid and email@example.com"
  assert parse_mentions(text) == [b, a]
  assert parse_mentions("") == []
  assert parse_mentions(None) == []


async def _team(client: AsyncClient) -> dict:
  """owner + assignee + watcher share a workspace; outsider does not."""
  for email in ("assignee@example.com", "watcher@example.com", "outsider@example.com", "owner@example.com"):
    await register(client, email)
  env = await make_board(client)
  ws_id = env["workspace"]["id"]
  for email in ("assignee@example.com", "watcher@example.com"):
    await invite_and_accept(client, owner_email="owner@example.com", workspace_id=ws_id, email=email)
  await login(client, "owner@example.com")
  ids = {e: await user_id_for(f"{e}@example.com") for e in ("owner", "assignee", "watcher", "outsider")}
  card = (
    await client.post("/cards", json={"title": "Task", "columnId": env["columns"][0]["id"], "assigneeId": ids["assignee"]})
  ).json()
  return {"env": env, "ids": ids, "card": card}


async def _types(client: AsyncClient, email: str) -> list[str]:
  await login(client, email)
  return [n["type"] for n in (await client.get("/notifications")).json() if n["type"] != "WORKSPACE_INVITATION"]


@pytest.mark.anyio
async def test_comment_notifies_mentions_and_assignee(client: AsyncClient) -> None:
  t = await _team(client)
  ids = t["ids"]
  r = await client.post(
    "/comments",
    json={"cardId": t["card"]["id"], "content": f"@{ids['watcher']} @{ids['outsider']} @{ids['owner']} look"},
  )
  assert r.status_code == 201, r.text
  assert r.json()["mentions"] == [ids["watcher"], ids["outsider"], ids["owner"]]

  assert await _types(client, "watcher@example.com") == ["MENTIONED"]
  assert await _types(client, "assignee@example.com") == ["COMMENT_ADDED"]
  # Mentions reach registered users even outside the workspace.
  assert await _types(client, "outsider@example.com") == ["MENTIONED"]
  assert await _types(client, "owner@example.com") == []


@pytest.mark.anyio
async def test_mention_and_assignee_get_one_notification_each(client: AsyncClient) -> None:
  t = await _team(client)
  ids = t["ids"]
  r = await client.post("/comments", json={"cardId": t["card"]["id"], "content": f"@{ids['watcher']} check this"})
  assert r.status_code == 201, r.text

  assert await _types(client, "watcher@example.com") == ["MENTIONED"]
  assert await _types(client, "assignee@example.com") == ["COMMENT_ADDED"]
  assert await _types(client, "owner@example.com") == []


@pytest.mark.anyio
async def test_unknown_mention_ids_are_kept_but_not_delivered(client: AsyncClient) -> None:
  t = await _team(client)
  ghost = str(uuid.uuid4())
  r = await client.post("/comments", json={"cardId": t["card"]["id"], "content": f"@{ghost} @{t['ids']['outsider']} hi"})
  assert r.status_code == 201, r.text
  assert r.json()["mentions"] == [ghost, t["ids"]["outsider"]]
  assert await _types(client, "outsider@example.com") == ["MENTIONED"]


@pytest.mark.anyio
async def test_mentioned_assignee_gets_only_mention(client: AsyncClient) -> None:
  t = await _team(client)
  await client.post("/comments", json={"cardId": t["card"]["id"], "content": f"@{t['ids']['assignee']} ping"})
  kinds = await _types(client, "assignee@example.com")
  assert kinds.count("MENTIONED") == 1
  assert "COMMENT_ADDED" not in kinds


@pytest.mark.anyio
async def test_move_notifies_assignee(client: AsyncClient) -> None:
  t = await _team(client)
  done = t["env"]["columns"][1]
  r = await client.patch(f"/cards/{t['card']['id']}/move", json={"columnId": done["id"], "order": 0})
  assert r.status_code == 200, r.text
  await login(client, "assignee@example.com")
  notes = (await client.get("/notifications")).json()
  moved = next(n for n in notes if n["type"] == "CARD_MOVED")
  assert "Done" in moved["message"]
  assert moved["card"]["boardId"] == t["env"]["board"]["id"]


@pytest.mark.anyio
async def test_comment_edit_and_delete_are_author_only(client: AsyncClient) -> None:
  t = await _team(client)
  cm = (await client.post("/comments", json={"cardId": t["card"]["id"], "content": "mine"})).json()

  await login(client, "watcher@example.com")
  assert (await client.patch(f"/comments/{cm['id']}", json={"content": "hijack"})).status_code == 403
  assert (await client.delete(f"/comments/{cm['id']}")).status_code == 403

  await login(client, "owner@example.com")
  upd = await client.patch(f"/comments/{cm['id']}", json={"content": f"edited @{t['ids']['watcher']}"})
  assert upd.status_code == 200, upd.text
  assert upd.json()["mentions"] == [t["ids"]["watcher"]]
  assert (await client.delete(f"/comments/{cm['id']}")).status_code == 200
  assert (await client.get("/comments", params={"cardId": t["card"]["id"]})).json() == []

  acts = [a["actionType"] for a in (await client.get("/activities", params={"cardId": t["card"]["id"]})).json()]
  assert acts[:3] == ["DELETE_COMMENT", "UPDATE_COMMENT", "ADD_COMMENT"]


@pytest.mark.anyio
async def test_notification_read_unread_delete(client: AsyncClient) -> None:
  t = await _team(client)
  for i in range(3):
    await client.post("/comments", json={"cardId": t["card"]["id"], "content": f"note {i}"})

  await login(client, "assignee@example.com")
  # Three comments plus the workspace invitation.
  assert (await client.get("/notifications/unread-count")).json() == {"count": 4}

  notes = (await client.get("/notifications", params={"unreadOnly": "true"})).json()
  first = notes[0]["id"]
  r = await client.patch(f"/notifications/{first}/read")
  assert r.json() == {"id": first, "read": True}
  assert (await client.get("/notifications/unread-count")).json()["count"] == 3
  assert first not in [n["id"] for n in (await client.get("/notifications", params={"unreadOnly": "true"})).json()]

  r = await client.patch("/notifications/read-all")
  assert r.json() == {"count": 3}
  assert (await client.get("/notifications/unread-count")).json()["count"] == 0

  assert (await client.delete(f"/notifications/{first}")).status_code == 200
  assert (await client.delete(f"/notifications/{first}")).status_code == 404

  # Other users' notifications are invisible.
  await login(client, "watcher@example.com")
  other = (await client.get("/notifications")).json()[0]["id"]
  await login(client, "assignee@example.com")
  assert (await client.patch(f"/notifications/{other}/read")).status_code == 404
