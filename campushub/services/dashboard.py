"""
Dashboard counters.

Each counter is a pure filter spec built from the actor and the current time,
then executed as a count query against the store.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from ..config import settings
from ..schemas.auth import Actor
from ..schemas.campus import DashboardCounters
from ..store import Filter, RecordStore
from .permissions import in_group, is_staff


CounterSpec = Tuple[str, List[Filter]]


def announcements_spec(actor: Actor, now: datetime) -> CounterSpec:
    since = now - timedelta(days=settings.recent_window_days)
    return "announcements", [("created_at", "gte", since)]


def queries_spec(actor: Actor, now: datetime) -> CounterSpec:
    filters: List[Filter] = [("status", "eq", "open")]
    if not is_staff(actor):
        filters.append(("author_id", "eq", actor.id))
    return "queries", filters


def od_spec(actor: Actor, now: datetime) -> Optional[CounterSpec]:
    """Requests waiting on the actor: own open ones for applicants, the actor's gate for approvers."""
    if in_group(actor, "department_head"):
        return "od_requests", [("department_status", "eq", "pending")]
    if in_group(actor, "institution_head"):
        return "od_requests", [("department_status", "eq", "approved"), ("institution_status", "eq", "pending")]
    if is_staff(actor):
        return None
    return "od_requests", [("applicant_id", "eq", actor.id), ("final_status", "in", ["pending", "on_hold"])]


def chat_spec(actor: Actor, now: datetime) -> CounterSpec:
    since = now - timedelta(hours=settings.chat_recent_hours)
    return "chat_messages", [("author_id", "neq", actor.id), ("created_at", "gte", since)]


def lost_found_spec(actor: Actor, now: datetime) -> CounterSpec:
    since = now - timedelta(days=settings.recent_window_days)
    return "lost_items", [("status", "eq", "open"), ("created_at", "gte", since)]


COUNTERS: Dict[str, Callable[[Actor, datetime], Optional[CounterSpec]]] = {
    "announcements": announcements_spec,
    "queries": queries_spec,
    "od_requests": od_spec,
    "chat": chat_spec,
    "lost_found": lost_found_spec,
}


def counter_specs(actor: Actor, now: datetime) -> Dict[str, Optional[CounterSpec]]:
    return {name: build(actor, now) for name, build in COUNTERS.items()}


def compute_counters(store: RecordStore, actor: Actor, now: Optional[datetime] = None) -> DashboardCounters:
    now = now or datetime.utcnow()
    values = {}
    for name, spec in counter_specs(actor, now).items():
        values[name] = store.count(*spec) if spec else 0
    return DashboardCounters(**values)
