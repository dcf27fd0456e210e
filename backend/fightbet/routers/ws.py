"""
ws.py: per-user WebSocket channel.

  /ws?token=<jwt>
      → token checked against the users table
          → socket registered on app.state.connections under the user's id
              → services push { "type": ..., "data": {...} } through EventDispatcher

The server never expects meaningful input; reading only keeps the socket open
until the client goes away.
"""
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fightbet.core.deps import get_user_from_token
from fightbet.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def user_ws(ws: WebSocket, token: str = ""):
    async with AsyncSessionLocal() as db:
        user = await get_user_from_token(token, db) if token else None
    if user is None:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await ws.accept()
    manager = ws.app.state.connections
    manager.register(user.id, ws)
    logger.debug("WebSocket opened for user %s", user.id)
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user.id, ws)
        logger.debug("WebSocket closed for user %s", user.id)
