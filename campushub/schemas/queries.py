import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


QUERY_STATUSES = {"open", "answered", "closed"}


class StudentQuery(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    author_name: str
    author_institution_id: Optional[str] = None
    subject: str
    category: str = "general"
    status: str = "open"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueryMessage(BaseModel):
    id: uuid.UUID
    query_id: uuid.UUID
    sender_id: uuid.UUID
    sender_name: str
    sender_role: str
    body: str
    created_at: Optional[datetime] = None


class QueryThread(BaseModel):
    query: StudentQuery
    messages: List[QueryMessage]


class CreateQueryRequest(BaseModel):
    subject: str
    category: str = "general"
    body: str


class PostMessageRequest(BaseModel):
    body: str


class SetStatusRequest(BaseModel):
    status: str
