"""
Client-side queue of optimistic writes.

A write is shown immediately under a temporary id (provisional), then either
confirmed with the server's record or rolled back when the store call fails.
"""
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import structlog

from .errors import DomainError


logger = structlog.get_logger()

PROVISIONAL = "provisional"
CONFIRMED = "confirmed"
ROLLED_BACK = "rolled_back"


@dataclass
class PendingOperation:
    temp_id: str
    payload: Dict[str, Any]
    state: str = PROVISIONAL
    record: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class PendingOperationQueue:
    def __init__(self) -> None:
        self._ops: "OrderedDict[str, PendingOperation]" = OrderedDict()

    def add(self, payload: Dict[str, Any]) -> PendingOperation:
        op = PendingOperation(temp_id=f"temp-{uuid.uuid4()}", payload=dict(payload))
        self._ops[op.temp_id] = op
        return op

    def _op(self, temp_id: str) -> PendingOperation:
        op = self._ops.get(temp_id)
        if op is None:
            raise KeyError(temp_id)
        return op

    def confirm(self, temp_id: str, record: Dict[str, Any]) -> PendingOperation:
        op = self._op(temp_id)
        op.state = CONFIRMED
        op.record = record
        return op

    def rollback(self, temp_id: str, error: str) -> PendingOperation:
        op = self._ops.pop(temp_id)
        op.state = ROLLED_BACK
        op.error = error
        logger.warning("optimistic_rollback", temp_id=temp_id, error=error)
        return op

    def provisional(self) -> List[PendingOperation]:
        return [op for op in self._ops.values() if op.state == PROVISIONAL]

    def run(self, payload: Dict[str, Any], send: Callable[[Dict[str, Any]], Dict[str, Any]]) -> PendingOperation:
        """Add, send, then confirm. A failed send (StoreError or a rejected write) rolls the entry back and propagates."""
        op = self.add(payload)
        try:
            record = send(op.payload)
        except DomainError as e:
            self.rollback(op.temp_id, e.message)
            raise
        return self.confirm(op.temp_id, record)

    def merge(self, server_records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Server records followed by still-provisional entries.

        Confirmed entries the server list already contains are dropped from the queue.
        """
        server_ids = {str(r.get("id")) for r in server_records}
        for temp_id, op in list(self._ops.items()):
            if op.state == CONFIRMED and op.record and str(op.record.get("id")) in server_ids:
                del self._ops[temp_id]
        pending = [{**op.payload, "id": op.temp_id, "pending": True} for op in self.provisional()]
        confirmed = [op.record for op in self._ops.values() if op.state == CONFIRMED and op.record]
        return list(server_records) + confirmed + pending
