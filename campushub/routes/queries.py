from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_actor
from ..schemas.auth import Actor
from ..schemas.queries import CreateQueryRequest, PostMessageRequest, SetStatusRequest
from ..services.change_feed import publish_from_thread
from ..services.query_threads import QueryThreadService
from ..store import RecordStore, get_store


router = APIRouter(prefix="/queries", tags=["queries"])


def get_service(store: RecordStore = Depends(get_store)) -> QueryThreadService:
    return QueryThreadService(store)


@router.post("")
def create_query(payload: CreateQueryRequest, svc: QueryThreadService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    thread = svc.create_query(me, payload)
    publish_from_thread("queries", thread.query.id, "insert")
    return thread


@router.get("")
def list_queries(status: Optional[str] = None, svc: QueryThreadService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    return svc.list_queries(me, status)


@router.get("/{query_id}")
def get_thread(
    query_id: str,
    after: Optional[datetime] = None,
    svc: QueryThreadService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    return svc.get_thread(me, query_id, after)


@router.post("/{query_id}/messages")
def post_message(
    query_id: str,
    payload: PostMessageRequest,
    svc: QueryThreadService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    thread = svc.post_message(me, query_id, payload.body)
    publish_from_thread("query_messages", thread.messages[0].id, "insert")
    publish_from_thread("queries", thread.query.id, "update")
    return thread


@router.post("/{query_id}/status")
def set_status(
    query_id: str,
    payload: SetStatusRequest,
    svc: QueryThreadService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    query = svc.set_status(me, query_id, payload.status)
    publish_from_thread("queries", query.id, "update")
    return query
