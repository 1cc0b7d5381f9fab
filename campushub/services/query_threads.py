"""
Student query threads with staff replies.

A staff reply on an open query marks it answered in the same operation.
"""
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from ..config import settings
from ..errors import NotFoundError, PartialWriteError, StoreError, ValidationError
from ..schemas.auth import Actor
from ..schemas.queries import (
    QUERY_STATUSES,
    CreateQueryRequest,
    QueryMessage,
    QueryThread,
    StudentQuery,
)
from ..store import RecordStore
from .notifications import notify
from .permissions import is_staff, require_capability


logger = structlog.get_logger()


def display_role(actor: Actor) -> str:
    """Most senior role for message labels."""
    for role in reversed(settings.staff_roles):
        if role in actor.roles:
            return role
    return actor.roles[0] if actor.roles else settings.default_role


class QueryThreadService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    def _query(self, query_id) -> StudentQuery:
        row = self.store.get("queries", query_id)
        if not row:
            raise NotFoundError("Query not found", query_id=str(query_id))
        return StudentQuery(**row)

    def _messages(self, query_id, after: Optional[datetime] = None) -> List[QueryMessage]:
        filters = [("query_id", "eq", query_id)]
        if after is not None:
            filters.append(("created_at", "gt", after))
        rows = self.store.query("query_messages", filters, order_by=["created_at", "id"])
        return [QueryMessage(**r) for r in rows]

    def create_query(self, actor: Actor, req: CreateQueryRequest) -> QueryThread:
        """Insert the query, then its first message."""
        require_capability(actor, "query:create")
        subject = req.subject.strip()
        body = req.body.strip()
        if not subject:
            raise ValidationError("Subject is required")
        if not body:
            raise ValidationError("Message is required")
        now = self.clock()
        query = StudentQuery(**self.store.insert("queries", {
            "author_id": actor.id,
            "author_name": actor.name,
            "author_institution_id": actor.institution_id,
            "subject": subject,
            "category": (req.category or "general").strip().lower(),
            "status": "open",
            "created_at": now,
            "updated_at": now,
        }))
        try:
            message = self._insert_message(actor, query, body)
        except StoreError as e:
            logger.error("partial_write", step="first_message", query_id=str(query.id), error=e.message)
            raise PartialWriteError(
                "Query created but its first message failed", step="first_message", committed={"query_id": str(query.id)}
            ) from e
        logger.info("query_created", query_id=str(query.id), author_id=str(actor.id))
        return QueryThread(query=query, messages=[message])

    def _insert_message(self, actor: Actor, query: StudentQuery, body: str) -> QueryMessage:
        return QueryMessage(**self.store.insert("query_messages", {
            "query_id": query.id,
            "sender_id": actor.id,
            "sender_name": actor.name,
            "sender_role": display_role(actor),
            "body": body,
            "created_at": self.clock(),
        }))

    def list_queries(self, actor: Actor, status: Optional[str] = None) -> List[StudentQuery]:
        """Staff see every query; students see their own."""
        filters = []
        if not is_staff(actor):
            filters.append(("author_id", "eq", actor.id))
        if status:
            filters.append(("status", "eq", status))
        rows = self.store.query("queries", filters, order_by="updated_at", descending=True)
        return [StudentQuery(**r) for r in rows]

    def get_thread(self, actor: Actor, query_id, after: Optional[datetime] = None) -> QueryThread:
        query = self._query(query_id)
        require_capability(actor, "query:view", query)
        return QueryThread(query=query, messages=self._messages(query.id, after))

    def post_message(self, actor: Actor, query_id, body: str) -> QueryThread:
        query = self._query(query_id)
        require_capability(actor, "query:post", query)
        body = (body or "").strip()
        if not body:
            raise ValidationError("Message is required")
        message = self._insert_message(actor, query, body)
        changes = {"updated_at": message.created_at}
        escalate = is_staff(actor) and query.status == "open"
        if escalate:
            changes["status"] = "answered"
        try:
            query = StudentQuery(**self.store.update("queries", query.id, changes))
        except StoreError as e:
            logger.error("partial_write", step="status", query_id=str(query.id), error=e.message)
            raise PartialWriteError(
                "Message posted but the query status was not updated", step="status",
                committed={"query_id": str(query.id), "message_id": str(message.id)},
            ) from e
        if escalate:
            notify(self.store, query.author_id, "query_answered",
                   {"query_id": str(query.id), "subject": query.subject}, actor=actor)
            logger.info("query_answered", query_id=str(query.id), staff_id=str(actor.id))
        return QueryThread(query=query, messages=[message])

    def set_status(self, actor: Actor, query_id, status: str) -> StudentQuery:
        require_capability(actor, "query:set_status")
        if status not in QUERY_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = self._query(query_id)
        row = self.store.update("queries", query.id, {"status": status, "updated_at": self.clock()})
        logger.info("query_status_set", query_id=str(query.id), status=status)
        return StudentQuery(**row)
