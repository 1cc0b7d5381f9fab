"""
Faculty directory and cabin presence.
"""
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from ..errors import NotFoundError
from ..schemas.auth import Actor
from ..schemas.campus import FacultyMember, PresenceUpdate
from ..store import RecordStore
from .permissions import require_capability


logger = structlog.get_logger()

SEARCH_FIELDS = ("name", "subjects", "cabin_number", "role")


def matches(member: FacultyMember, term: str) -> bool:
    term = term.strip().lower()
    if not term:
        return True
    return any(term in (getattr(member, f) or "").lower() for f in SEARCH_FIELDS)


class PresenceService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    def directory(self, search: Optional[str] = None, department: Optional[str] = None) -> List[FacultyMember]:
        filters = [("department", "eq", department)] if department else []
        members = [FacultyMember(**r) for r in self.store.query("faculty_members", filters, order_by="name")]
        if search:
            members = [m for m in members if matches(m, search)]
        return members

    def my_record(self, actor: Actor) -> FacultyMember:
        rows = self.store.query("faculty_members", [("user_id", "eq", actor.id)], limit=1)
        if not rows:
            raise NotFoundError("No faculty record for this user")
        return FacultyMember(**rows[0])

    def update(self, actor: Actor, member_id, data: PresenceUpdate) -> FacultyMember:
        row = self.store.get("faculty_members", member_id)
        if not row:
            raise NotFoundError("Faculty member not found")
        require_capability(actor, "presence:update", row)
        changes = data.model_dump(exclude_none=True)
        if "cabin_number" in changes:
            changes["cabin_number"] = changes["cabin_number"].strip().upper() or None
        changes["updated_at"] = self.clock()
        saved = FacultyMember(**self.store.update("faculty_members", member_id, changes))
        logger.info("presence_updated", member_id=str(member_id), in_cabin=saved.is_in_cabin, on_campus=saved.is_on_campus)
        return saved
