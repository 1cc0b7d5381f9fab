"""
Location consensus over lost-item pins.

Pure functions: given pins and votes, compute tallies, confidence, display
buckets, global pin numbers and the per-floor grouping. No I/O here.
"""
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence
import uuid

from ..config import settings
from ..schemas.lost_found import LostItem, Pin, PinView, Tally, Vote


BUCKET_VERIFIED = "verified"
BUCKET_SUGGESTED = "suggested"
BUCKET_LOW = "low_confidence"


def tally(votes: Iterable[Vote]) -> Tally:
    counts = Counter(v.vote_type for v in votes)
    return Tally(tick=counts.get("tick", 0), cross=counts.get("cross", 0))


def confidence(t: Tally) -> Optional[float]:
    """tick / (tick + cross); None when nobody has voted."""
    if t.total == 0:
        return None
    return t.tick / t.total


def confidence_bucket(value: Optional[float]) -> str:
    if value is None:
        return BUCKET_SUGGESTED
    if value >= settings.verified_threshold:
        return BUCKET_VERIFIED
    if value >= settings.suggested_threshold:
        return BUCKET_SUGGESTED
    return BUCKET_LOW


def order_pins(pins: Iterable[Pin]) -> List[Pin]:
    """Insertion order: created_at, then id to break ties."""
    return sorted(pins, key=lambda p: (p.created_at is None, p.created_at, str(p.id)))


def number_pins(pins: Iterable[Pin]) -> Dict[uuid.UUID, int]:
    """1-based position of each pin in the item's full pin list, across all floors."""
    return {p.id: i + 1 for i, p in enumerate(order_pins(pins))}


def resolve_floor(pin: Pin, item_floor: Optional[int]) -> Optional[int]:
    # Pins without a floor are shown on the item's floor
    return pin.floor if pin.floor is not None else item_floor


def floor_histogram(pins: Iterable[Pin], item_floor: Optional[int] = None) -> Dict[int, int]:
    counts = Counter()
    for p in pins:
        floor = resolve_floor(p, item_floor)
        if floor is not None:
            counts[floor] += 1
    return dict(sorted(counts.items()))


def pins_on_floor(pins: Iterable[Pin], floor: int, item_floor: Optional[int] = None) -> List[Pin]:
    return [p for p in order_pins(pins) if resolve_floor(p, item_floor) == floor]


def primary_floor(floors: Sequence[Optional[int]]) -> Optional[int]:
    """Floor holding the most pins; ties go to the lowest floor."""
    counts = Counter(f for f in floors if f is not None)
    if not counts:
        return None
    return min(counts, key=lambda f: (-counts[f], f))


def build_pin_views(
    item: LostItem,
    pins: Sequence[Pin],
    votes: Sequence[Vote],
    viewer_id: Optional[uuid.UUID] = None,
) -> List[PinView]:
    by_pin: Dict[uuid.UUID, List[Vote]] = {}
    for v in votes:
        by_pin.setdefault(v.pin_id, []).append(v)
    numbers = number_pins(pins)
    views = []
    for p in order_pins(pins):
        pin_votes = by_pin.get(p.id, [])
        t = tally(pin_votes)
        c = confidence(t)
        mine = None
        if viewer_id is not None:
            mine = next((v.vote_type for v in pin_votes if v.user_id == viewer_id), None)
        views.append(PinView(
            pin=p,
            pin_number=numbers[p.id],
            floor=resolve_floor(p, item.floor),
            tally=t,
            confidence=c,
            bucket=confidence_bucket(c),
            my_vote=mine,
        ))
    return views
