from datetime import datetime
from typing import Callable, List, Optional

from ..errors import NotFoundError, ValidationError
from ..schemas.auth import Actor
from ..schemas.campus import ChatMessage
from ..store import RecordStore
from .permissions import require_capability


MAX_MESSAGE_LENGTH = 4000


class ChatService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    def general_channel(self) -> dict:
        rows = self.store.query("chat_channels", [("type", "eq", "general")], order_by="created_at", limit=1)
        if rows:
            return rows[0]
        return self.store.insert("chat_channels", {"name": "General", "type": "general", "created_at": self.clock()})

    def channels(self) -> List[dict]:
        return self.store.query("chat_channels", [("type", "eq", "general")], order_by="created_at")

    def _channel(self, channel_id) -> dict:
        row = self.store.get("chat_channels", channel_id)
        if not row:
            raise NotFoundError("Channel not found")
        return row

    def messages(self, channel_id, after: Optional[datetime] = None, limit: int = 200) -> List[ChatMessage]:
        """Ascending by time. With after, only newer messages (poll cursor)."""
        channel = self._channel(channel_id)
        filters = [("channel_id", "eq", channel["id"])]
        if after is not None:
            filters.append(("created_at", "gt", after))
        if after is None:
            # Latest page, returned oldest first
            rows = self.store.query("chat_messages", filters, order_by=["created_at", "id"], descending=True, limit=limit)
            rows.reverse()
        else:
            rows = self.store.query("chat_messages", filters, order_by=["created_at", "id"], limit=limit)
        return [ChatMessage(**r) for r in rows]

    def post(self, actor: Actor, channel_id, body: str) -> ChatMessage:
        require_capability(actor, "chat:post")
        body = (body or "").strip()
        if not body:
            raise ValidationError("Message cannot be empty")
        if len(body) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Message is too long")
        channel = self._channel(channel_id)
        return ChatMessage(**self.store.insert("chat_messages", {
            "channel_id": channel["id"],
            "author_id": actor.id,
            "author_name": actor.name,
            "body": body,
            "created_at": self.clock(),
        }))
