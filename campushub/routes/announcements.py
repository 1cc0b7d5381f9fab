from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..schemas.campus import AnnouncementCreate
from ..services.announcements import AnnouncementService
from ..services.change_feed import publish_from_thread
from ..store import RecordStore, get_store


router = APIRouter(prefix="/announcements", tags=["announcements"])


def get_service(store: RecordStore = Depends(get_store)) -> AnnouncementService:
    return AnnouncementService(store)


@router.get("")
def list_announcements(category: Optional[str] = None, svc: AnnouncementService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.list_for(me, category)


@router.post("")
def create_announcement(payload: AnnouncementCreate, svc: AnnouncementService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    ann = svc.create(me, payload)
    publish_from_thread("announcements", ann.id, "insert")
    return ann


@router.delete("/{announcement_id}")
def delete_announcement(announcement_id: str, svc: AnnouncementService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    svc.delete(me, announcement_id)
    publish_from_thread("announcements", announcement_id, "delete")
    return {"ok": True}
