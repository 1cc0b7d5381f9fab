import asyncio
from datetime import datetime
from typing import Any, Dict, Optional, Set

import anyio.from_thread
import structlog
from fastapi import WebSocket


logger = structlog.get_logger()


class ChangeHub:
    """Pub/sub of "collection X record Y changed" events. Subscribers re-fetch what they need."""

    def __init__(self) -> None:
        # collection name ("*" for all) -> set of WebSocket connections
        self._subscriptions: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, ws: WebSocket, collection: str = "*") -> None:
        async with self._lock:
            self._subscriptions.setdefault(collection, set()).add(ws)

    async def unsubscribe(self, ws: WebSocket, collection: Optional[str] = None) -> None:
        async with self._lock:
            names = [collection] if collection else list(self._subscriptions.keys())
            for name in names:
                conns = self._subscriptions.get(name)
                if conns is None:
                    continue
                conns.discard(ws)
                if not conns:
                    self._subscriptions.pop(name, None)

    def subscriber_count(self, collection: str = "*") -> int:
        return len(self._subscriptions.get(collection, set()))

    async def publish(self, collection: str, record_id: Any, action: str) -> int:
        """Send the event to subscribers of the collection and of "*". Returns the number delivered."""
        data = {
            "event": "change",
            "data": {
                "collection": collection,
                "record_id": str(record_id),
                "action": action,
                "at": datetime.utcnow().isoformat(),
            },
        }
        async with self._lock:
            targets = set(self._subscriptions.get(collection, set())) | set(self._subscriptions.get("*", set()))
        delivered = 0
        dead = []
        for ws in targets:
            try:
                await ws.send_json(data)
                delivered += 1
            except (RuntimeError, ConnectionError) as e:
                logger.info("change_feed_drop", collection=collection, error=str(e))
                dead.append(ws)
        for ws in dead:
            await self.unsubscribe(ws)
        return delivered


def publish_from_thread(collection: str, record_id: Any, action: str) -> None:
    """Publish from a sync route running in the worker threadpool."""
    async def _publish():
        await hub.publish(collection, record_id, action)

    anyio.from_thread.run(_publish)


# Global singleton hub
hub = ChangeHub()
