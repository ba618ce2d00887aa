from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from kanban_api.access import board_access
from kanban_api.db import SessionLocal
from kanban_api.deps import user_for_session
from kanban_api.errors import DomainError
from kanban_api.realtime import WS_FORBIDDEN, WS_UNAUTHORIZED, hub
from kanban_api.security import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/boards/{board_id}")
async def board_socket(websocket: WebSocket, board_id: str) -> None:
  async with SessionLocal() as db:
    try:
      user = await user_for_session(db, websocket.cookies.get(SESSION_COOKIE_NAME))
    except HTTPException:
      await websocket.close(code=WS_UNAUTHORIZED)
      return
    try:
      await board_access(db, board_id, user)
    except DomainError as e:
      logger.info("websocket refused for board %s: %s", board_id, e.message)
      await websocket.close(code=WS_FORBIDDEN)
      return

  await websocket.accept()
  hub.join(board_id, websocket, user.id)
  try:
    while True:
      # Inbound frames are ignored; the socket only receives board events.
      await websocket.receive_text()
  except WebSocketDisconnect:
    pass
  finally:
    hub.leave(board_id, websocket)
