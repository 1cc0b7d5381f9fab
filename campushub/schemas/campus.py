import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


ANNOUNCEMENT_CATEGORIES = {"events", "holidays", "exams", "maintenance"}


class Announcement(BaseModel):
    id: uuid.UUID
    title: str
    body: str
    category: str
    pinned: bool = False
    schedule_at: Optional[datetime] = None
    created_by: uuid.UUID
    author_name: Optional[str] = None
    created_at: Optional[datetime] = None


class AnnouncementCreate(BaseModel):
    title: str
    body: str
    category: str
    pinned: bool = False
    schedule_at: Optional[datetime] = None


class FacultyMember(BaseModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    name: str
    email: str
    department: Optional[str] = None
    subjects: Optional[str] = None
    role: str = "faculty"
    cabin_number: Optional[str] = None
    is_in_cabin: bool = False
    is_on_campus: bool = False
    updated_at: Optional[datetime] = None


class PresenceUpdate(BaseModel):
    cabin_number: Optional[str] = None
    is_in_cabin: Optional[bool] = None
    is_on_campus: Optional[bool] = None
    subjects: Optional[str] = None


class ChatMessage(BaseModel):
    id: uuid.UUID
    channel_id: uuid.UUID
    author_id: uuid.UUID
    author_name: Optional[str] = None
    body: str
    created_at: Optional[datetime] = None


class ChatPost(BaseModel):
    body: str


class Notification(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: str
    payload: Optional[Dict[str, Any]] = None
    read: bool = False
    created_at: Optional[datetime] = None


class DashboardCounters(BaseModel):
    announcements: int = 0
    queries: int = 0
    od_requests: int = 0
    chat: int = 0
    lost_found: int = 0
