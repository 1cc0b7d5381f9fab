"""
Campus Hub API client.
Authenticated calls plus the polling loops used by chat and dashboard views.
"""
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from .config import settings
from .errors import (
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
    StoreError,
    ValidationError,
)
from .pending_ops import PendingOperation, PendingOperationQueue


logger = structlog.get_logger()

_ERRORS_BY_STATUS = {
    400: ValidationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: PreconditionError,
    503: StoreError,
}


class CampusHubClient:
    """Client for the Campus Hub HTTP API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.base_url = (base_url or settings.public_base_url).rstrip("/")
        self.token = token
        self._http = http or httpx.Client(base_url=self.base_url, timeout=timeout)
        self.chat_queue = PendingOperationQueue()

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        headers = self._headers()
        headers.update(kwargs.pop("headers", {}))
        try:
            response = self._http.request(method, "/" + endpoint.lstrip("/"), headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise StoreError(f"Request failed: {e}") from e
        if response.status_code >= 400:
            detail = response.text
            try:
                detail = response.json().get("detail", detail)
            except ValueError:
                pass
            error_cls = _ERRORS_BY_STATUS.get(response.status_code)
            if error_cls is None:
                response.raise_for_status()
            raise error_cls(str(detail))
        if not response.content:
            return None
        return response.json()

    # --- auth ---

    def login(self, identifier: str, password: str) -> Dict[str, Any]:
        tokens = self._request("POST", "/auth/login", json={"identifier": identifier, "password": password})
        self.token = tokens["access_token"]
        return tokens

    # --- chat ---

    def general_channel(self) -> Dict[str, Any]:
        return self._request("GET", "/chat/channels/general")

    def chat_messages(self, channel_id: str, after: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"after": after} if after else None
        return self._request("GET", f"/chat/channels/{channel_id}/messages", params=params)

    def send_chat_message(self, channel_id: str, body: str) -> PendingOperation:
        """Optimistic send: the message is queued as provisional until the server confirms it."""
        return self.chat_queue.run(
            {"channel_id": channel_id, "body": body},
            lambda payload: self._request("POST", f"/chat/channels/{channel_id}/messages", json={"body": payload["body"]}),
        )

    def poll_chat(
        self,
        channel_id: str,
        on_messages: Callable[[List[Dict[str, Any]]], None],
        stop: threading.Event,
        interval: Optional[float] = None,
    ) -> None:
        """Fetch new messages until stop is set. The cursor is the newest created_at seen."""
        interval = settings.chat_poll_interval_s if interval is None else interval
        cursor: Optional[str] = None
        while not stop.is_set():
            try:
                messages = self.chat_messages(channel_id, after=cursor)
            except StoreError as e:
                logger.warning("chat_poll_failed", error=e.message)
                messages = []
            if messages:
                cursor = messages[-1]["created_at"]
                on_messages(self.chat_queue.merge(messages))
            stop.wait(interval)

    # --- dashboard ---

    def dashboard(self) -> Dict[str, int]:
        return self._request("GET", "/dashboard/counters")

    def poll_dashboard(
        self,
        on_counters: Callable[[Dict[str, int]], None],
        stop: threading.Event,
        interval: Optional[float] = None,
    ) -> None:
        interval = settings.dashboard_poll_interval_s if interval is None else interval
        while not stop.is_set():
            try:
                on_counters(self.dashboard())
            except StoreError as e:
                logger.warning("dashboard_poll_failed", error=e.message)
            stop.wait(interval)

    # --- convenience wrappers ---

    def report_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/lost-items", json=payload)

    def vote(self, pin_id: str, vote_type: str) -> Dict[str, Any]:
        return self._request("POST", f"/lost-items/pins/{pin_id}/vote", json={"vote_type": vote_type})

    def create_od_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/od-requests", json=payload)

    def post_query_message(self, query_id: str, body: str) -> Dict[str, Any]:
        return self._request("POST", f"/queries/{query_id}/messages", json={"body": body})
