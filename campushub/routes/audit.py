from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..services.audit import get_audit_logs, verify_audit_log
from ..services.permissions import require_capability
from ..store import RecordStore, get_store


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    store: RecordStore = Depends(get_store),
    me: Actor = Depends(get_current_actor),
):
    require_capability(me, "audit:view")
    rows = get_audit_logs(store, entity_type=entity_type, entity_id=entity_id, limit=min(limit, 500))
    return [{**r, "verified": verify_audit_log(r)} for r in rows]
