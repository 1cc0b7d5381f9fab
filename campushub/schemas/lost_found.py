import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


CATEGORIES = {"electronics", "books", "accessories", "clothing", "id_cards", "other"}
ITEM_STATUSES = {"open", "matched", "returned"}
VOTE_TYPES = {"tick", "cross"}


class LostItem(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    category: str
    reporter_id: uuid.UUID
    status: str = "open"
    floor: Optional[int] = None
    image_url: Optional[str] = None
    time_window_start: Optional[datetime] = None
    time_window_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Pin(BaseModel):
    id: uuid.UUID
    item_id: uuid.UUID
    floor: Optional[int] = None
    x: float
    y: float
    created_by: uuid.UUID
    created_at: Optional[datetime] = None


class Vote(BaseModel):
    id: uuid.UUID
    pin_id: uuid.UUID
    user_id: uuid.UUID
    vote_type: str
    created_at: Optional[datetime] = None


class PinComment(BaseModel):
    id: uuid.UUID
    pin_id: uuid.UUID
    author_id: uuid.UUID
    author_name: Optional[str] = None
    body: str
    created_at: Optional[datetime] = None


class Tally(BaseModel):
    tick: int = 0
    cross: int = 0

    @property
    def total(self) -> int:
        return self.tick + self.cross


class PinView(BaseModel):
    """A pin as shown on the floor plan."""

    pin: Pin
    pin_number: int
    floor: Optional[int]
    tally: Tally
    confidence: Optional[float]
    bucket: str
    my_vote: Optional[str] = None


class ItemDetail(BaseModel):
    item: LostItem
    pins: List[PinView]
    floor_histogram: Dict[int, int]


class PinInput(BaseModel):
    floor: Optional[int] = None
    x: float
    y: float


class ReportItemRequest(BaseModel):
    title: str
    description: Optional[str] = None
    category: str = "other"
    image_url: Optional[str] = None
    time_window_start: Optional[datetime] = None
    time_window_end: Optional[datetime] = None
    pins: List[PinInput] = Field(default_factory=list)


class VoteRequest(BaseModel):
    vote_type: str


class StatusRequest(BaseModel):
    status: str


class CommentRequest(BaseModel):
    body: str
