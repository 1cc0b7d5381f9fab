from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ..auth.security import user_from_token
from ..db import get_db
from ..logging import structlog
from ..services.change_feed import hub


router = APIRouter(tags=["changes"])


@router.websocket("/ws/changes")
async def ws_changes(websocket: WebSocket, token: Optional[str] = None, collection: str = "*", db: Session = Depends(get_db)):
    """Push "collection X record Y changed" events. Send "ping" to keep alive."""
    if not token:
        await websocket.close(code=4401)
        return
    try:
        user = user_from_token(token, db)
    except HTTPException:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    await hub.subscribe(websocket, collection)
    structlog.get_logger().info("change_feed_subscribed", user_id=str(user.id), collection=collection)
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        structlog.get_logger().info("change_feed_disconnected", user_id=str(user.id), collection=collection)
    finally:
        await hub.unsubscribe(websocket)
