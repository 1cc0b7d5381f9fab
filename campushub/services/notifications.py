"""
In-app notifications for owners of records other users act on.
"""
from typing import Any, Dict, List, Optional

import structlog

from ..errors import NotFoundError, PermissionDeniedError, StoreError
from ..schemas.auth import Actor
from ..schemas.campus import Notification
from ..store import RecordStore


logger = structlog.get_logger()

NOTIFICATION_TYPES = {"pin_added", "pin_vote", "pin_comment", "od_decision", "query_answered"}


def notify(
    store: RecordStore,
    user_id: Any,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
    actor: Optional[Actor] = None,
) -> Optional[Notification]:
    """Create a notification for user_id. Nothing is sent to the actor about their own action.

    Delivery is best-effort: a store failure is logged and the caller's operation stands.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    if user_id is None or (actor is not None and str(user_id) == str(actor.id)):
        return None
    data = dict(payload or {})
    if actor is not None:
        data.setdefault("actor_name", actor.name)
    try:
        row = store.insert("notifications", {"user_id": user_id, "type": type, "payload": data, "read": False})
    except StoreError as e:
        logger.warning("notification_failed", user_id=str(user_id), type=type, error=e.message)
        return None
    return Notification(**row)


def list_notifications(store: RecordStore, actor: Actor, unread_only: bool = False, limit: int = 50) -> List[Notification]:
    filters = [("user_id", "eq", actor.id)]
    if unread_only:
        filters.append(("read", "eq", False))
    rows = store.query("notifications", filters, order_by="created_at", descending=True, limit=limit)
    return [Notification(**r) for r in rows]


def unread_count(store: RecordStore, actor: Actor) -> int:
    return store.count("notifications", [("user_id", "eq", actor.id), ("read", "eq", False)])


def mark_read(store: RecordStore, actor: Actor, notification_id: Any) -> Notification:
    row = store.get("notifications", notification_id)
    if not row:
        raise NotFoundError("Notification not found")
    if str(row["user_id"]) != str(actor.id):
        raise PermissionDeniedError("Not your notification")
    return Notification(**store.update("notifications", notification_id, {"read": True}))


def mark_all_read(store: RecordStore, actor: Actor) -> int:
    rows = store.query("notifications", [("user_id", "eq", actor.id), ("read", "eq", False)])
    for r in rows:
        store.update("notifications", r["id"], {"read": True})
    return len(rows)
