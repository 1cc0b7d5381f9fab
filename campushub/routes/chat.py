from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..schemas.campus import ChatPost
from ..services.change_feed import publish_from_thread
from ..services.chat import ChatService
from ..store import RecordStore, get_store


router = APIRouter(prefix="/chat", tags=["chat"])


def get_service(store: RecordStore = Depends(get_store)) -> ChatService:
    return ChatService(store)


@router.get("/channels")
def list_channels(svc: ChatService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.channels()


@router.get("/channels/general")
def general_channel(svc: ChatService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.general_channel()


@router.get("/channels/{channel_id}/messages")
def list_messages(
    channel_id: str,
    after: Optional[datetime] = None,
    limit: int = 200,
    svc: ChatService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    return svc.messages(channel_id, after=after, limit=min(max(limit, 1), 500))


@router.post("/channels/{channel_id}/messages")
def post_message(channel_id: str, payload: ChatPost, svc: ChatService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    msg = svc.post(me, channel_id, payload.body)
    publish_from_thread("chat_messages", msg.id, "insert")
    return msg
