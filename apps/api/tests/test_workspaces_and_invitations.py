from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import invite_and_accept, login, register, user_id_for


@pytest.mark.anyio
async def test_create_workspace_makes_caller_sole_owner(client: AsyncClient) -> None:
  me = await register(client, "owner@example.com")
  r = await client.post("/workspaces", json={"name": "Team", "description": "d"})
  assert r.status_code == 201, r.text
  ws = r.json()
  assert [(m["userId"], m["role"]) for m in ws["members"]] == [(me["id"], "OWNER")]

  listed = (await client.get("/workspaces")).json()
  assert [w["id"] for w in listed] == [ws["id"]]


@pytest.mark.anyio
async def test_invitation_accept_flow(client: AsyncClient) -> None:
  await register(client, "invitee@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()

  inv = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "INVITEE@example.com", "role": "ADMIN"})
  assert inv.status_code == 201, inv.text
  inv_id = inv.json()["id"]
  assert inv.json()["status"] == "PENDING"

  again = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "invitee@example.com"})
  assert again.status_code == 409
  assert again.json()["detail"] == "Invitation already sent"

  # Only the invitee may answer.
  wrong = await client.post(f"/workspaces/invitations/{inv_id}/accept")
  assert wrong.status_code == 403

  await login(client, "invitee@example.com")
  pending = (await client.get("/workspaces/invitations/pending")).json()
  assert [p["id"] for p in pending] == [inv_id]
  assert pending[0]["workspace"]["name"] == "Team"

  notes = (await client.get("/notifications")).json()
  assert notes[0]["type"] == "WORKSPACE_INVITATION"
  assert notes[0]["workspaceInvitation"]["status"] == "PENDING"

  acc = await client.post(f"/workspaces/invitations/{inv_id}/accept")
  assert acc.status_code == 200, acc.text
  assert acc.json()["role"] == "ADMIN"

  replay = await client.post(f"/workspaces/invitations/{inv_id}/accept")
  assert replay.status_code == 409
  assert (await client.get("/workspaces/invitations/pending")).json() == []
  assert (await client.get(f"/workspaces/{ws['id']}")).status_code == 200


@pytest.mark.anyio
async def test_invitation_reject_then_reinvite(client: AsyncClient) -> None:
  await register(client, "invitee@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  inv_id = (await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "invitee@example.com"})).json()["id"]

  await login(client, "invitee@example.com")
  rej = await client.post(f"/workspaces/invitations/{inv_id}/reject")
  assert rej.status_code == 200, rej.text
  assert (await client.post(f"/workspaces/invitations/{inv_id}/accept")).status_code == 409
  assert (await client.get(f"/workspaces/{ws['id']}")).status_code == 403

  await login(client, "owner@example.com")
  again = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "invitee@example.com"})
  assert again.status_code == 201, again.text


@pytest.mark.anyio
async def test_invite_errors(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()

  missing = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "ghost@example.com"})
  assert missing.status_code == 404

  self_invite = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "owner@example.com"})
  assert self_invite.status_code == 409
  assert self_invite.json()["detail"] == "User is already a member"

  owner_role = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "owner@example.com", "role": "OWNER"})
  assert owner_role.status_code == 422


@pytest.mark.anyio
async def test_plain_member_cannot_invite_or_remove(client: AsyncClient) -> None:
  await register(client, "member@example.com")
  await register(client, "other@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  inv_id = (await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "member@example.com"})).json()["id"]
  await login(client, "member@example.com")
  await client.post(f"/workspaces/invitations/{inv_id}/accept")

  r = await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "other@example.com"})
  assert r.status_code == 403
  owner_id = await user_id_for("owner@example.com")
  r = await client.delete(f"/workspaces/{ws['id']}/members/{owner_id}")
  assert r.status_code == 403
  assert (await client.delete(f"/workspaces/{ws['id']}")).status_code == 403


@pytest.mark.anyio
async def test_owner_cannot_be_removed_and_members_can(client: AsyncClient) -> None:
  await register(client, "member@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  inv_id = (await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "member@example.com"})).json()["id"]
  await login(client, "member@example.com")
  await client.post(f"/workspaces/invitations/{inv_id}/accept")
  await login(client, "owner@example.com")

  owner_id = await user_id_for("owner@example.com")
  r = await client.delete(f"/workspaces/{ws['id']}/members/{owner_id}")
  assert r.status_code == 403
  assert r.json()["detail"] == "Cannot remove workspace owner"

  member_id = await user_id_for("member@example.com")
  r = await client.delete(f"/workspaces/{ws['id']}/members/{member_id}")
  assert r.status_code == 200, r.text
  r = await client.delete(f"/workspaces/{ws['id']}/members/{member_id}")
  assert r.status_code == 404

  owners = [m for m in (await client.get(f"/workspaces/{ws['id']}")).json()["members"] if m["role"] == "OWNER"]
  assert len(owners) == 1


@pytest.mark.anyio
async def test_delete_workspace_cascades(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  board = (await client.post("/boards", json={"name": "B", "workspaceId": ws["id"]})).json()

  upd = await client.patch(f"/workspaces/{ws['id']}", json={"name": "Renamed"})
  assert upd.json()["name"] == "Renamed"

  r = await client.delete(f"/workspaces/{ws['id']}")
  assert r.status_code == 200, r.text
  assert (await client.get(f"/workspaces/{ws['id']}")).status_code == 404
  assert (await client.get(f"/boards/{board['id']}")).status_code == 404


@pytest.mark.anyio
async def test_only_invitee_can_reject(client: AsyncClient) -> None:
  await register(client, "invitee@example.com")
  await register(client, "bystander@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  inv_id = (await client.post(f"/workspaces/{ws['id']}/invite", json={"email": "invitee@example.com"})).json()["id"]

  r = await client.post(f"/workspaces/invitations/{inv_id}/reject")
  assert r.status_code == 403
  assert r.json()["detail"] == "This invitation is not for you"

  await login(client, "bystander@example.com")
  assert (await client.post(f"/workspaces/invitations/{inv_id}/reject")).status_code == 403

  # Still pending for the real invitee.
  await login(client, "invitee@example.com")
  assert [p["id"] for p in (await client.get("/workspaces/invitations/pending")).json()] == [inv_id]


@pytest.mark.anyio
async def test_admin_cannot_remove_owner(client: AsyncClient) -> None:
  await register(client, "admin@example.com")
  await register(client, "member@example.com")
  await register(client, "owner@example.com")
  ws = (await client.post("/workspaces", json={"name": "Team"})).json()
  await invite_and_accept(client, owner_email="owner@example.com", workspace_id=ws["id"], email="member@example.com")
  await invite_and_accept(client, owner_email="owner@example.com", workspace_id=ws["id"], email="admin@example.com", role="ADMIN")

  owner_id = await user_id_for("owner@example.com")
  r = await client.delete(f"/workspaces/{ws['id']}/members/{owner_id}")
  assert r.status_code == 403
  assert r.json()["detail"] == "Cannot remove workspace owner"

  member_id = await user_id_for("member@example.com")
  assert (await client.delete(f"/workspaces/{ws['id']}/members/{member_id}")).status_code == 200
  roles = sorted(m["role"] for m in (await client.get(f"/workspaces/{ws['id']}")).json()["members"])
  assert roles == ["ADMIN", "OWNER"]
