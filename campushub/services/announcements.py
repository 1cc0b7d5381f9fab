from datetime import datetime
from typing import Callable, List

import structlog

from ..errors import NotFoundError, ValidationError
from ..schemas.auth import Actor
from ..schemas.campus import ANNOUNCEMENT_CATEGORIES, Announcement, AnnouncementCreate
from ..store import RecordStore
from .permissions import is_staff, require_capability


logger = structlog.get_logger()


def visible_order(items: List[Announcement], now: datetime, include_scheduled: bool) -> List[Announcement]:
    """Pinned first, then newest. Future-scheduled ones are dropped unless include_scheduled."""
    shown = [a for a in items if include_scheduled or a.schedule_at is None or a.schedule_at <= now]
    newest_first = sorted(shown, key=lambda a: a.created_at or now, reverse=True)
    return sorted(newest_first, key=lambda a: not a.pinned)


class AnnouncementService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    def create(self, actor: Actor, data: AnnouncementCreate) -> Announcement:
        require_capability(actor, "announcement:create")
        title, body = data.title.strip(), data.body.strip()
        if not title or not body:
            raise ValidationError("Title and body are required")
        category = data.category.strip().lower()
        if category not in ANNOUNCEMENT_CATEGORIES:
            raise ValidationError(f"Invalid category: {category}")
        row = self.store.insert("announcements", {
            "title": title,
            "body": body,
            "category": category,
            "pinned": data.pinned,
            "schedule_at": data.schedule_at,
            "created_by": actor.id,
            "author_name": actor.name,
            "created_at": self.clock(),
        })
        logger.info("announcement_created", announcement_id=str(row["id"]), category=category)
        return Announcement(**row)

    def list_for(self, actor: Actor, category: str = None) -> List[Announcement]:
        filters = [("category", "eq", category)] if category else []
        rows = self.store.query("announcements", filters, order_by="created_at", descending=True)
        return visible_order([Announcement(**r) for r in rows], self.clock(), include_scheduled=is_staff(actor))

    def delete(self, actor: Actor, announcement_id) -> None:
        row = self.store.get("announcements", announcement_id)
        if not row:
            raise NotFoundError("Announcement not found")
        require_capability(actor, "announcement:delete", row)
        self.store.delete("announcements", announcement_id)
        logger.info("announcement_deleted", announcement_id=str(announcement_id))
