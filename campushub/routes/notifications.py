from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..services import notifications as notification_service
from ..store import RecordStore, get_store

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(unread_only: bool = False, store: RecordStore = Depends(get_store), me: Actor = Depends(get_current_actor)):
    return notification_service.list_notifications(store, me, unread_only=unread_only)


@router.get("/unread_count")
def unread_count(store: RecordStore = Depends(get_store), me: Actor = Depends(get_current_actor)):
    return {"total": notification_service.unread_count(store, me)}


@router.post("/read-all")
def mark_all_read(store: RecordStore = Depends(get_store), me: Actor = Depends(get_current_actor)):
    return {"updated": notification_service.mark_all_read(store, me)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, store: RecordStore = Depends(get_store), me: Actor = Depends(get_current_actor)):
    return notification_service.mark_read(store, me, notification_id)
