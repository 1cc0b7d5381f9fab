from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..config import settings
from ..schemas.auth import Actor
from ..services.dashboard import compute_counters
from ..store import RecordStore, get_store


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/counters")
def counters(store: RecordStore = Depends(get_store), me: Actor = Depends(get_current_actor)):
    return compute_counters(store, me)


@router.get("/config")
def poll_config(me: Actor = Depends(get_current_actor)):
    """Suggested poll intervals for clients, in seconds."""
    return {
        "chat_poll_interval_s": settings.chat_poll_interval_s,
        "dashboard_poll_interval_s": settings.dashboard_poll_interval_s,
    }
