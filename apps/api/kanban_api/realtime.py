from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

WS_UNAUTHORIZED = 4401
WS_FORBIDDEN = 4403


def room_for(board_id: str) -> str:
  return f"board:{board_id}"


class BoardHub:
  """In-process board rooms. Emits never raise; a socket that fails to send is dropped."""

  def __init__(self) -> None:
    self.rooms: dict[str, set[WebSocket]] = {}
    self.users: dict[WebSocket, str] = {}

  def join(self, board_id: str, ws: WebSocket, user_id: str | None = None) -> None:
    self.rooms.setdefault(room_for(board_id), set()).add(ws)
    if user_id is not None:
      self.users[ws] = user_id
    logger.info("websocket joined %s", room_for(board_id))

  def leave(self, board_id: str, ws: WebSocket) -> None:
    room = room_for(board_id)
    subs = self.rooms.get(room)
    if subs is None:
      return
    subs.discard(ws)
    if not subs:
      del self.rooms[room]
    if not any(ws in s for s in self.rooms.values()):
      self.users.pop(ws, None)
    logger.info("websocket left %s", room)

  def clear(self) -> None:
    self.rooms.clear()
    self.users.clear()

  def subscribers(self, board_id: str) -> int:
    return len(self.rooms.get(room_for(board_id), ()))

  async def emit(self, board_id: str, event: str, payload: Any) -> int:
    subs = list(self.rooms.get(room_for(board_id), ()))
    if not subs:
      return 0
    message = {"event": event, "data": jsonable_encoder(payload)}
    sent = 0
    for ws in subs:
      try:
        await ws.send_json(message)
        sent += 1
      except Exception:
        logger.warning("dropping websocket in %s after failed %s send", room_for(board_id), event, exc_info=True)
        self.leave(board_id, ws)
    return sent

  async def disconnect_user(self, board_ids: Iterable[str], user_id: str, code: int = WS_FORBIDDEN) -> int:
    """Close every socket the user holds on the given boards, e.g. after losing membership."""
    closed = 0
    for board_id in board_ids:
      for ws in list(self.rooms.get(room_for(board_id), ())):
        if self.users.get(ws) != user_id:
          continue
        self.leave(board_id, ws)
        closed += 1
        try:
          await ws.close(code=code)
        except Exception:
          logger.warning("websocket in %s was already gone on close", room_for(board_id), exc_info=True)
    if closed:
      logger.info("closed %d websocket(s) for user %s", closed, user_id)
    return closed


hub = BoardHub()
