"""
Lost & found board: items, location pins, votes and pin comments.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

import structlog

from ..config import settings
from ..errors import NotFoundError, PartialWriteError, PreconditionError, StoreError, ValidationError
from ..schemas.auth import Actor
from ..schemas.lost_found import (
    CATEGORIES,
    ITEM_STATUSES,
    VOTE_TYPES,
    ItemDetail,
    LostItem,
    Pin,
    PinComment,
    PinView,
    ReportItemRequest,
    Vote,
)
from ..store import RecordStore
from . import consensus
from .audit import audit_committed_write
from .notifications import notify
from .permissions import require_capability


logger = structlog.get_logger()


def validate_pin_position(floor: Optional[int], x: float, y: float) -> None:
    if floor is not None and not (0 <= floor < settings.total_floors):
        raise ValidationError(f"Floor must be between 0 and {settings.total_floors - 1}", floor=floor)
    for name, value in (("x", x), ("y", y)):
        if not (0 <= value <= 100):
            raise ValidationError(f"{name} must be a percentage between 0 and 100", **{name: value})


def check_status_transition(current: str, target: str) -> None:
    if target not in ITEM_STATUSES:
        raise ValidationError(f"Invalid status: {target}")
    if target == "matched" and current == "open":
        return
    if target == "returned" and current != "returned":
        return
    raise PreconditionError(f"Cannot move item from {current} to {target}", status=current)


class LostFoundService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    # --- loading ---

    def _item(self, item_id) -> LostItem:
        row = self.store.get("lost_items", item_id)
        if not row:
            raise NotFoundError("Item not found", item_id=str(item_id))
        return LostItem(**row)

    def _pin(self, pin_id) -> Pin:
        row = self.store.get("pins", pin_id)
        if not row:
            raise NotFoundError("Pin not found", pin_id=str(pin_id))
        return Pin(**row)

    def _pins(self, item_id) -> List[Pin]:
        return [Pin(**r) for r in self.store.query("pins", [("item_id", "eq", item_id)], order_by=["created_at", "id"])]

    def _votes(self, pin_ids) -> List[Vote]:
        if not pin_ids:
            return []
        return [Vote(**r) for r in self.store.query("votes", [("pin_id", "in", list(pin_ids))])]

    # --- items ---

    def report_item(self, actor: Actor, req: ReportItemRequest) -> Tuple[LostItem, List[Pin]]:
        """Insert the item, then all of its pins in one batch."""
        require_capability(actor, "lost_item:report")
        title = req.title.strip()
        if not title:
            raise ValidationError("Title is required")
        category = (req.category or "other").lower()
        if category not in CATEGORIES:
            raise ValidationError(f"Invalid category: {category}")
        if not req.pins:
            raise ValidationError("At least one location pin is required")
        for p in req.pins:
            validate_pin_position(p.floor, p.x, p.y)
        if req.time_window_start and req.time_window_end and req.time_window_start > req.time_window_end:
            raise ValidationError("Time window start must be before its end")

        now = self.clock()
        item_row = self.store.insert("lost_items", {
            "title": title,
            "description": (req.description or "").strip() or None,
            "category": category,
            "reporter_id": actor.id,
            "status": "open",
            "floor": consensus.primary_floor([p.floor for p in req.pins]),
            "image_url": req.image_url,
            "time_window_start": req.time_window_start,
            "time_window_end": req.time_window_end,
            "created_at": now,
            "updated_at": now,
        })
        item = LostItem(**item_row)
        # Offsets keep the reported order stable in pin numbering
        try:
            pin_rows = self.store.insert_many("pins", [
                {"item_id": item.id, "floor": p.floor, "x": p.x, "y": p.y, "created_by": actor.id,
                 "created_at": now + timedelta(microseconds=i)}
                for i, p in enumerate(req.pins)
            ])
        except StoreError as e:
            logger.error("partial_write", step="pins", item_id=str(item.id), error=e.message)
            raise PartialWriteError(
                "Item created but some location pins failed", step="pins", committed={"item_id": str(item.id)}
            ) from e
        logger.info("lost_item_reported", item_id=str(item.id), pins=len(pin_rows), floor=item.floor)
        return item, [Pin(**r) for r in pin_rows]

    def list_items(self, status: Optional[str] = None, category: Optional[str] = None, reporter_id=None) -> List[LostItem]:
        filters = []
        if status:
            filters.append(("status", "eq", status))
        if category:
            filters.append(("category", "eq", category))
        if reporter_id:
            filters.append(("reporter_id", "eq", reporter_id))
        rows = self.store.query("lost_items", filters, order_by="created_at", descending=True)
        return [LostItem(**r) for r in rows]

    def get_detail(self, actor: Actor, item_id) -> ItemDetail:
        item = self._item(item_id)
        pins = self._pins(item.id)
        votes = self._votes([p.id for p in pins])
        return ItemDetail(
            item=item,
            pins=consensus.build_pin_views(item, pins, votes, viewer_id=actor.id),
            floor_histogram=consensus.floor_histogram(pins, item.floor),
        )

    def update_status(self, actor: Actor, item_id, status: str) -> LostItem:
        item = self._item(item_id)
        require_capability(actor, "lost_item:update_status", item)
        check_status_transition(item.status, status)
        row = self.store.update("lost_items", item.id, {"status": status, "updated_at": self.clock()})
        audit_committed_write(self.store, {"item_id": str(item.id), "status": status},
                              "lost_item", item.id, "STATUS", actor=actor,
                              changes_json={"status": {"before": item.status, "after": status}})
        logger.info("lost_item_status", item_id=str(item.id), status=status)
        return LostItem(**row)

    # --- pins & votes ---

    def add_pin(self, actor: Actor, item_id, floor: Optional[int], x: float, y: float) -> Pin:
        require_capability(actor, "pin:add")
        item = self._item(item_id)
        validate_pin_position(floor, x, y)
        pin = Pin(**self.store.insert("pins", {
            "item_id": item.id, "floor": floor, "x": x, "y": y, "created_by": actor.id, "created_at": self.clock(),
        }))
        notify(self.store, item.reporter_id, "pin_added",
               {"item_id": str(item.id), "item_title": item.title, "pin_id": str(pin.id), "floor": floor}, actor=actor)
        logger.info("pin_added", item_id=str(item.id), pin_id=str(pin.id), floor=floor)
        return pin

    def pin_view(self, pin: Pin, viewer_id=None) -> PinView:
        item = self._item(pin.item_id)
        pins = self._pins(item.id)
        views = consensus.build_pin_views(item, pins, self._votes([pin.id]), viewer_id=viewer_id)
        return next(v for v in views if v.pin.id == pin.id)

    def cast_vote(self, actor: Actor, pin_id, vote_type: str) -> PinView:
        """Record actor's vote. Re-casting the same vote removes it; a different vote replaces it."""
        require_capability(actor, "pin:vote")
        if vote_type not in VOTE_TYPES:
            raise ValidationError(f"Invalid vote type: {vote_type}")
        pin = self._pin(pin_id)
        existing = self.store.query("votes", [("pin_id", "eq", pin.id), ("user_id", "eq", actor.id)])
        toggled_off = bool(existing) and existing[0]["vote_type"] == vote_type
        if toggled_off:
            self.store.delete("votes", existing[0]["id"])
        elif existing:
            # one row per (pin, user): a changed vote is rewritten in place
            self.store.update("votes", existing[0]["id"], {"vote_type": vote_type, "created_at": self.clock()})
        else:
            self.store.insert("votes", {
                "pin_id": pin.id, "user_id": actor.id, "vote_type": vote_type, "created_at": self.clock(),
            })
        if not toggled_off:
            notify(self.store, pin.created_by, "pin_vote",
                   {"item_id": str(pin.item_id), "pin_id": str(pin.id), "vote_type": vote_type}, actor=actor)
        view = self.pin_view(pin, viewer_id=actor.id)
        logger.info("vote_cast", pin_id=str(pin.id), vote_type=None if toggled_off else vote_type,
                    tick=view.tally.tick, cross=view.tally.cross)
        return view

    # --- comments ---

    def add_comment(self, actor: Actor, pin_id, body: str) -> PinComment:
        require_capability(actor, "pin:comment")
        body = (body or "").strip()
        if not body:
            raise ValidationError("Comment cannot be empty")
        pin = self._pin(pin_id)
        comment = PinComment(**self.store.insert("pin_comments", {
            "pin_id": pin.id, "author_id": actor.id, "author_name": actor.name, "body": body,
            "created_at": self.clock(),
        }))
        notify(self.store, pin.created_by, "pin_comment",
               {"item_id": str(pin.item_id), "pin_id": str(pin.id), "comment_id": str(comment.id)}, actor=actor)
        return comment

    def list_comments(self, pin_id) -> List[PinComment]:
        pin = self._pin(pin_id)
        rows = self.store.query("pin_comments", [("pin_id", "eq", pin.id)], order_by=["created_at", "id"])
        return [PinComment(**r) for r in rows]
