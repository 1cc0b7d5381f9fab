"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
from datetime import datetime
from typing import Optional, Dict, Any, List

import structlog

from ..config import settings
from ..errors import PartialWriteError, StoreError
from ..schemas.auth import Actor
from ..store import RecordStore


logger = structlog.get_logger()


def _jsonable(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str)) if value is not None else None


def compute_integrity_hash(record: Dict[str, Any], secret: Optional[str] = None) -> str:
    """SHA256 over the canonical JSON of the audit fields plus a secret."""
    secret = settings.jwt_secret if secret is None else secret
    canonical_data = {
        "entity_type": record.get("entity_type"),
        "entity_id": str(record.get("entity_id")),
        "action": record.get("action"),
        "actor_id": str(record["actor_id"]) if record.get("actor_id") else None,
        "actor_role": record.get("actor_role"),
        "source": record.get("source"),
        "timestamp_utc": record["timestamp_utc"].isoformat() if record.get("timestamp_utc") else None,
        "changes": record.get("changes_json"),
        "context": record.get("context"),
    }
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def create_audit_log(
    store: RecordStore,
    entity_type: str,
    entity_id: Any,
    action: str,
    actor: Optional[Actor] = None,
    source: str = "api",
    changes_json: Optional[Dict] = None,
    context: Optional[Dict] = None,
) -> Dict[str, Any]:
    """
    Append an audit entry.

    Args:
        entity_type: od_request|lost_item|query
        action: CREATE|APPROVE|REJECT|HOLD|RESUBMIT|STATUS
        changes_json: before/after diff (see compute_diff)
    """
    record = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "actor_id": actor.id if actor else None,
        "actor_role": ",".join(actor.roles) if actor else "system",
        "source": source,
        "changes_json": _jsonable(changes_json),
        "timestamp_utc": datetime.utcnow().replace(microsecond=0),
        "context": _jsonable(context),
    }
    record["integrity_hash"] = compute_integrity_hash(record)
    return store.insert("audit_logs", record)


def audit_committed_write(store: RecordStore, committed: Dict[str, Any], *args: Any, **kwargs: Any) -> Dict[str, Any]:
    """create_audit_log for a change that is already saved.

    A failed audit insert is reported as a PartialWriteError at step "audit",
    carrying what was committed, so callers do not retry a write that landed.
    """
    try:
        return create_audit_log(store, *args, **kwargs)
    except StoreError as e:
        logger.error("audit_failed", committed=committed, error=e.message)
        raise PartialWriteError("Change saved but its audit entry failed", step="audit", committed=committed) from e


def verify_audit_log(record: Dict[str, Any], secret: Optional[str] = None) -> bool:
    return record.get("integrity_hash") == compute_integrity_hash(record, secret)


def get_audit_logs(
    store: RecordStore,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    filters = []
    if entity_type:
        filters.append(("entity_type", "eq", entity_type))
    if entity_id:
        filters.append(("entity_id", "eq", entity_id))
    return store.query("audit_logs", filters, order_by="timestamp_utc", descending=True, limit=limit)


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff
