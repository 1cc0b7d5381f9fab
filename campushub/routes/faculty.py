from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..schemas.campus import PresenceUpdate
from ..services.change_feed import publish_from_thread
from ..services.presence import PresenceService
from ..store import RecordStore, get_store


router = APIRouter(prefix="/faculty", tags=["faculty"])


def get_service(store: RecordStore = Depends(get_store)) -> PresenceService:
    return PresenceService(store)


@router.get("")
def directory(
    search: Optional[str] = None,
    department: Optional[str] = None,
    svc: PresenceService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    return svc.directory(search=search, department=department)


@router.get("/me")
def my_record(svc: PresenceService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.my_record(me)


@router.patch("/{member_id}")
def update_presence(
    member_id: str,
    payload: PresenceUpdate,
    svc: PresenceService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    member = svc.update(me, member_id, payload)
    publish_from_thread("faculty_members", member.id, "update")
    return member
