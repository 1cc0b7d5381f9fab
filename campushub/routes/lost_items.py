from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..config import settings
from ..errors import ValidationError
from ..schemas.auth import Actor
from ..schemas.lost_found import CommentRequest, PinInput, ReportItemRequest, StatusRequest, VoteRequest
from ..services.change_feed import publish_from_thread
from ..services.lost_found import LostFoundService
from ..store import RecordStore, get_store


router = APIRouter(prefix="/lost-items", tags=["lost-items"])


def get_service(store: RecordStore = Depends(get_store)) -> LostFoundService:
    return LostFoundService(store)


@router.post("")
def report_item(payload: ReportItemRequest, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    item, pins = svc.report_item(me, payload)
    publish_from_thread("lost_items", item.id, "insert")
    return {"item": item, "pins": pins}


@router.get("")
def list_items(
    status: Optional[str] = None,
    category: Optional[str] = None,
    mine: bool = False,
    svc: LostFoundService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    return svc.list_items(status=status, category=category, reporter_id=me.id if mine else None)


@router.get("/{item_id}")
def get_item(item_id: str, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.get_detail(me, item_id)


@router.get("/{item_id}/floors/{floor}")
def get_floor(item_id: str, floor: int, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    """Pins shown on one floor plan, keeping their global pin numbers."""
    if not (0 <= floor < settings.total_floors):
        raise ValidationError("Invalid floor", floor=floor)
    detail = svc.get_detail(me, item_id)
    return {
        "floor": floor,
        "pins": [p for p in detail.pins if p.floor == floor],
        "floor_histogram": detail.floor_histogram,
    }


@router.post("/{item_id}/pins")
def add_pin(item_id: str, payload: PinInput, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    pin = svc.add_pin(me, item_id, payload.floor, payload.x, payload.y)
    publish_from_thread("pins", pin.id, "insert")
    return pin


@router.post("/{item_id}/status")
def update_status(item_id: str, payload: StatusRequest, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    item = svc.update_status(me, item_id, payload.status)
    publish_from_thread("lost_items", item.id, "update")
    return item


@router.post("/pins/{pin_id}/vote")
def vote(pin_id: str, payload: VoteRequest, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    view = svc.cast_vote(me, pin_id, payload.vote_type)
    publish_from_thread("votes", view.pin.id, "update")
    return view


@router.get("/pins/{pin_id}/comments")
def list_comments(pin_id: str, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.list_comments(pin_id)


@router.post("/pins/{pin_id}/comments")
def add_comment(pin_id: str, payload: CommentRequest, svc: LostFoundService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    comment = svc.add_comment(me, pin_id, payload.body)
    publish_from_thread("pin_comments", comment.id, "insert")
    return comment
