"""
events.py: fire-and-forget push to WebSocket clients.

  service commits a state change
      → EventDispatcher.to_user() / broadcast()
          → ConnectionManager
              → every socket the user (or everyone) has open

Messages are typed:
  { "type": "bet:update",    "data": {...} }
  { "type": "fight:result",  "data": {...} }
  { "type": "fight:update",  "data": {...} }
  { "type": "notification",  "data": {...} }
  { "type": "wallet:update", "data": {...} }

A failed push is logged and dropped; it never reaches the caller.
"""
import logging
from typing import Any
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        # user_id → list of connected WebSockets
        self.connections: dict = {}

    def register(self, user_id: int, ws: WebSocket):
        self.connections.setdefault(user_id, []).append(ws)

    def disconnect(self, user_id: int, ws: WebSocket):
        conns = self.connections.get(user_id, [])
        try:
            conns.remove(ws)
        except ValueError:
            pass
        if not conns:
            self.connections.pop(user_id, None)

    async def send(self, user_id: int, data: dict):
        dead = []
        for ws in list(self.connections.get(user_id, [])):
            try:
                await ws.send_json(data)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(user_id, ws)

    async def broadcast(self, data: dict):
        for user_id in list(self.connections):
            await self.send(user_id, data)


class EventDispatcher:
    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def to_user(self, user_id: int, event: str, data: dict[str, Any]) -> None:
        try:
            await self.manager.send(user_id, {"type": event, "data": data})
        except Exception:
            logger.exception("Dropped %s event for user %s", event, user_id)

    async def broadcast(self, event: str, data: dict[str, Any]) -> None:
        try:
            await self.manager.broadcast({"type": event, "data": data})
        except Exception:
            logger.exception("Dropped %s broadcast", event)
