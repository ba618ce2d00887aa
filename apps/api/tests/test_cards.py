from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import invite_and_accept, login, make_board, register, user_id_for


def _actions(items: list[dict]) -> list[str]:
  return [a["actionType"] for a in items]


@pytest.mark.anyio
async def test_card_create_appends_and_logs(client: AsyncClient) -> None:
  me = await register(client, "owner@example.com")
  env = await make_board(client)
  col_id = env["columns"][0]["id"]

  c1 = (await client.post("/cards", json={"title": "First", "columnId": col_id})).json()
  c2 = (await client.post("/cards", json={"title": "Second", "columnId": col_id, "labels": ["bug"]})).json()
  assert (c1["order"], c2["order"]) == (0, 1)
  assert c1["creatorId"] == me["id"]
  assert c2["labels"] == ["bug"]
  assert c1["isCompleted"] is False and c1["isArchived"] is False

  acts = (await client.get("/activities", params={"cardId": c1["id"]})).json()
  assert _actions(acts) == ["CREATE_CARD"]
  assert acts[0]["details"] == {"title": "First"}


@pytest.mark.anyio
async def test_assignee_must_be_workspace_member(client: AsyncClient) -> None:
  await register(client, "stranger@example.com")
  await register(client, "owner@example.com")
  env = await make_board(client)
  stranger = await user_id_for("stranger@example.com")
  r = await client.post("/cards", json={"title": "X", "columnId": env["columns"][0]["id"], "assigneeId": stranger})
  assert r.status_code == 400
  assert r.json()["detail"] == "Assignee must be a member of this workspace"


@pytest.mark.anyio
async def test_update_logs_each_change(client: AsyncClient) -> None:
  await register(client, "member@example.com")
  await register(client, "owner@example.com")
  env = await make_board(client)
  ws_id = env["workspace"]["id"]
  await invite_and_accept(client, owner_email="owner@example.com", workspace_id=ws_id, email="member@example.com")
  await login(client, "owner@example.com")
  member_id = await user_id_for("member@example.com")

  card = (await client.post("/cards", json={"title": "Old", "columnId": env["columns"][0]["id"], "labels": ["a"]})).json()
  due = (datetime.now(timezone.utc) + timedelta(days=3)).replace(microsecond=0)
  r = await client.patch(
    f"/cards/{card['id']}",
    json={"title": "New", "description": "text", "assigneeId": member_id, "dueDate": due.isoformat(), "labels": ["b"]},
  )
  assert r.status_code == 200, r.text
  body = r.json()
  assert body["title"] == "New"
  assert body["assignee"]["id"] == member_id
  assert body["labels"] == ["b"]

  acts = (await client.get("/activities", params={"cardId": card["id"]})).json()
  assert set(_actions(acts)) >= {
    "UPDATE_TITLE",
    "UPDATE_DESCRIPTION",
    "ASSIGN_USER",
    "UPDATE_DUE_DATE",
    "ADD_LABEL",
    "REMOVE_LABEL",
  }
  title = next(a for a in acts if a["actionType"] == "UPDATE_TITLE")
  assert title["details"] == {"oldTitle": "Old", "newTitle": "New"}

  r = await client.patch(f"/cards/{card['id']}", json={"assigneeId": None, "dueDate": None})
  assert r.status_code == 200, r.text
  assert r.json()["assigneeId"] is None and r.json()["dueDate"] is None
  acts = (await client.get("/activities", params={"cardId": card["id"]})).json()
  # Same request, so only the set is stable.
  assert set(_actions(acts)[:2]) == {"REMOVE_DUE_DATE", "UNASSIGN_USER"}

  await login(client, "member@example.com")
  kinds = [n["type"] for n in (await client.get("/notifications")).json()]
  assert "ASSIGNED" in kinds


@pytest.mark.anyio
async def test_untouched_fields_are_left_alone(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  card = (await client.post("/cards", json={"title": "Keep", "description": "d", "columnId": env["columns"][0]["id"]})).json()
  r = await client.patch(f"/cards/{card['id']}", json={"order": 7})
  assert r.status_code == 200, r.text
  assert (r.json()["title"], r.json()["description"], r.json()["order"]) == ("Keep", "d", 7)
  acts = (await client.get("/activities", params={"cardId": card["id"]})).json()
  assert _actions(acts) == ["CREATE_CARD"]


@pytest.mark.anyio
async def test_move_card_between_columns(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  todo, done = env["columns"]
  card = (await client.post("/cards", json={"title": "Ship", "columnId": todo["id"]})).json()

  r = await client.patch(f"/cards/{card['id']}/move", json={"columnId": done["id"], "order": 3})
  assert r.status_code == 200, r.text
  assert (r.json()["columnId"], r.json()["order"]) == (done["id"], 3)

  acts = (await client.get("/activities", params={"cardId": card["id"]})).json()
  assert acts[0]["actionType"] == "MOVE_CARD"
  assert acts[0]["details"] == {"fromColumn": "To Do", "toColumn": "Done"}

  # Reordering inside the same column is not a move.
  r = await client.patch(f"/cards/{card['id']}/move", json={"columnId": done["id"], "order": 0})
  assert r.status_code == 200
  acts = (await client.get("/activities", params={"cardId": card["id"]})).json()
  assert _actions(acts).count("MOVE_CARD") == 1


@pytest.mark.anyio
async def test_move_to_other_workspace_rejected(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  a = await make_board(client)
  b = await make_board(client)
  card = (await client.post("/cards", json={"title": "Stay", "columnId": a["columns"][0]["id"]})).json()
  r = await client.patch(f"/cards/{card['id']}/move", json={"columnId": b["columns"][0]["id"], "order": 0})
  assert r.status_code == 400
  r = await client.patch(f"/cards/{card['id']}/move", json={"columnId": a["columns"][1]["id"], "order": -1})
  assert r.status_code == 422


@pytest.mark.anyio
async def test_archive_unarchive_and_toggle(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  col_id = env["columns"][0]["id"]
  card = (await client.post("/cards", json={"title": "Old news", "columnId": col_id})).json()

  r = await client.patch(f"/cards/{card['id']}/archive")
  assert r.json()["isArchived"] is True
  assert (await client.get("/cards", params={"columnId": col_id})).json() == []
  archived = (await client.get("/cards/archived", params={"boardId": env["board"]["id"]})).json()
  assert [c["id"] for c in archived] == [card["id"]]

  r = await client.patch(f"/cards/{card['id']}/unarchive")
  assert r.json()["isArchived"] is False
  assert [c["id"] for c in (await client.get("/cards", params={"columnId": col_id})).json()] == [card["id"]]

  assert (await client.patch(f"/cards/{card['id']}/toggle-completed")).json()["isCompleted"] is True
  assert (await client.patch(f"/cards/{card['id']}/toggle-completed")).json()["isCompleted"] is False
  acts = _actions((await client.get("/activities", params={"cardId": card["id"]})).json())
  assert acts[:2] == ["REOPEN_CARD", "COMPLETE_CARD"]
  assert acts.count("UPDATE_CARD") == 2


@pytest.mark.anyio
async def test_copy_card(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  col_id = env["columns"][0]["id"]
  src = (await client.post("/cards", json={"title": "Template", "description": "body", "columnId": col_id, "labels": ["x"]})).json()

  r = await client.post(f"/cards/{src['id']}/copy")
  assert r.status_code == 201, r.text
  copy = r.json()
  assert copy["id"] != src["id"]
  assert (copy["title"], copy["description"], copy["labels"], copy["order"]) == ("Template", "body", ["x"], 1)
  acts = (await client.get("/activities", params={"cardId": copy["id"]})).json()
  assert acts[0]["details"]["copiedFromCardId"] == src["id"]


@pytest.mark.anyio
async def test_delete_card(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  card = (await client.post("/cards", json={"title": "Bye", "columnId": env["columns"][0]["id"]})).json()
  await client.post("/comments", json={"cardId": card["id"], "content": "note"})
  r = await client.delete(f"/cards/{card['id']}")
  assert r.status_code == 200, r.text
  assert (await client.get(f"/cards/{card['id']}")).status_code == 404


@pytest.mark.anyio
async def test_card_detail_includes_comments_and_checklist(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  card = (await client.post("/cards", json={"title": "Detail", "columnId": env["columns"][0]["id"]})).json()
  await client.post("/comments", json={"cardId": card["id"], "content": "first"})
  await client.post("/comments", json={"cardId": card["id"], "content": "second"})
  await client.post(f"/cards/{card['id']}/checklist", json={"content": "step"})

  d = (await client.get(f"/cards/{card['id']}")).json()
  assert d["column"]["boardId"] == env["board"]["id"]
  assert [c["content"] for c in d["comments"]] == ["second", "first"]
  assert [i["content"] for i in d["checklist"]] == ["step"]


@pytest.mark.anyio
async def test_checklist_positions_and_toggle(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  card = (await client.post("/cards", json={"title": "Todo", "columnId": env["columns"][0]["id"]})).json()
  for text in ("one", "two", "three"):
    r = await client.post(f"/cards/{card['id']}/checklist", json={"content": text})
    assert r.status_code == 201, r.text

  items = (await client.get(f"/cards/{card['id']}/checklist")).json()
  assert [i["position"] for i in items] == [0, 1, 2]

  first = items[0]["id"]
  assert (await client.patch(f"/checklist/{first}/toggle")).json()["isCompleted"] is True
  upd = await client.patch(f"/checklist/{first}", json={"content": "uno", "isCompleted": False})
  assert (upd.json()["content"], upd.json()["isCompleted"]) == ("uno", False)
  assert (await client.delete(f"/checklist/{first}")).status_code == 200
  assert len((await client.get(f"/cards/{card['id']}/checklist")).json()) == 2


@pytest.mark.anyio
async def test_search_filters(client: AsyncClient) -> None:
  me = await register(client, "owner@example.com")
  env = await make_board(client)
  board_id = env["board"]["id"]
  col_id = env["columns"][0]["id"]
  now = datetime.now(timezone.utc)

  await client.post("/cards", json={"title": "Fix login bug", "columnId": col_id, "labels": ["bug"], "assigneeId": me["id"]})
  await client.post("/cards", json={"title": "Write docs", "description": "about LOGIN", "columnId": col_id, "labels": ["docs"]})
  await client.post("/cards", json={"title": "Late", "columnId": col_id, "dueDate": (now - timedelta(days=1)).isoformat()})
  await client.post("/cards", json={"title": "Soon", "columnId": col_id, "dueDate": (now + timedelta(days=2)).isoformat()})

  async def titles(**params) -> list[str]:
    r = await client.get("/cards/search", params={"boardId": board_id, **params})
    assert r.status_code == 200, r.text
    return sorted(c["title"] for c in r.json())

  assert await titles(keyword="login") == ["Fix login bug", "Write docs"]
  assert await titles(assigneeId=me["id"]) == ["Fix login bug"]
  assert await titles(labels=["docs", "nope"]) == ["Write docs"]
  assert await titles(dueDateFilter="overdue") == ["Late"]
  assert await titles(dueDateFilter="upcoming") == ["Soon"]
  assert await titles(dueDateFilter="none") == ["Fix login bug", "Write docs"]
  assert await titles(keyword="login", labels=["bug"]) == ["Fix login bug"]


@pytest.mark.anyio
async def test_search_keyword_wildcards_are_literal(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  col_id = env["columns"][0]["id"]
  await client.post("/cards", json={"title": "Plain card", "columnId": col_id})
  await client.post("/cards", json={"title": "Discount 50% off", "columnId": col_id})
  await client.post("/cards", json={"title": "snake_case rename", "columnId": col_id})

  async def titles(keyword: str) -> list[str]:
    r = await client.get("/cards/search", params={"boardId": env["board"]["id"], "keyword": keyword})
    assert r.status_code == 200, r.text
    return sorted(c["title"] for c in r.json())

  assert await titles("%") == ["Discount 50% off"]
  assert await titles("50%") == ["Discount 50% off"]
  assert await titles("_") == ["snake_case rename"]
  assert await titles("\\") == []


@pytest.mark.anyio
async def test_reorder_then_archive_keeps_sibling_order(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  env = await make_board(client)
  col_id = env["columns"][0]["id"]
  k1 = (await client.post("/cards", json={"title": "K1", "columnId": col_id})).json()
  k2 = (await client.post("/cards", json={"title": "K2", "columnId": col_id})).json()
  assert (k1["order"], k2["order"]) == (0, 1)

  r = await client.patch(f"/cards/{k1['id']}/move", json={"columnId": col_id, "order": 1})
  assert r.status_code == 200, r.text
  assert r.json()["order"] == 1
  listed = {c["id"]: c["order"] for c in (await client.get("/cards", params={"columnId": col_id})).json()}
  assert listed == {k1["id"]: 1, k2["id"]: 1}

  assert (await client.patch(f"/cards/{k1['id']}/archive")).status_code == 200
  assert [c["id"] for c in (await client.get("/cards", params={"columnId": col_id})).json()] == [k2["id"]]
  archived = (await client.get("/cards/archived", params={"boardId": env["board"]["id"]})).json()
  assert [c["id"] for c in archived] == [k1["id"]]
