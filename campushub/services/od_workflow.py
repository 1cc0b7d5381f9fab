"""
On-duty request approval workflow.

Two sequential gates: the department gate (HOD / assistant dean) and the
institution gate (dean). The transition functions below are pure; they take a
request and return a new one, or raise before anything is written.
ODWorkflowService loads and saves through the record store and adds the
capability checks, audit entries and applicant notifications.
"""
import uuid
from datetime import date, datetime
from typing import Callable, List, Optional

import structlog

from ..errors import NotFoundError, PreconditionError, ValidationError
from ..schemas.auth import Actor
from ..schemas.od import (
    DECISIONS,
    ApprovalGate,
    Attachments,
    ODCreate,
    ODEdit,
    OnDutyRequest,
    StudentRef,
)
from ..store import RecordStore
from .audit import audit_committed_write, compute_diff
from .notifications import notify
from .permissions import has_capability, in_group, is_staff, require_capability


logger = structlog.get_logger()

DECISION_AUDIT_ACTIONS = {"approved": "APPROVE", "rejected": "REJECT", "on_hold": "HOLD"}


def compute_total_days(start: date, end: date) -> int:
    """Inclusive day count; a single-day request is 1."""
    if start > end:
        raise ValidationError("From date must be on or before to date")
    return (end - start).days + 1


def derive_final_status(department: str, institution: str) -> str:
    if "rejected" in (department, institution):
        return "rejected"
    if "on_hold" in (department, institution):
        return "on_hold"
    if institution == "approved":
        return "approved"
    return "pending"


def _check_decision(decision: str, remarks: Optional[str]) -> Optional[str]:
    if decision not in DECISIONS:
        raise ValidationError(f"Invalid decision: {decision}")
    remarks = (remarks or "").strip() or None
    if decision == "on_hold" and not remarks:
        raise ValidationError("Remarks are required to put a request on hold")
    return remarks


def apply_department_decision(
    od: OnDutyRequest, decision: str, approver_id: uuid.UUID, remarks: Optional[str], now: datetime
) -> OnDutyRequest:
    if decision not in DECISIONS:
        raise ValidationError(f"Invalid decision: {decision}")
    if od.department_gate.status != "pending":
        raise PreconditionError(
            "Department gate already decided", department_status=od.department_gate.status
        )
    remarks = _check_decision(decision, remarks)
    gate = ApprovalGate(status=decision, approver_id=approver_id, decided_at=now, remarks=remarks)
    return od.model_copy(update={
        "department_gate": gate,
        "final_status": derive_final_status(decision, od.institution_gate.status),
        "updated_at": now,
    })


def apply_institution_decision(
    od: OnDutyRequest, decision: str, approver_id: uuid.UUID, remarks: Optional[str], now: datetime
) -> OnDutyRequest:
    if decision not in DECISIONS:
        raise ValidationError(f"Invalid decision: {decision}")
    if od.department_gate.status != "approved":
        raise PreconditionError(
            "Department approval is required first", department_status=od.department_gate.status
        )
    if od.institution_gate.status != "pending":
        raise PreconditionError(
            "Institution gate already decided", institution_status=od.institution_gate.status
        )
    remarks = _check_decision(decision, remarks)
    gate = ApprovalGate(status=decision, approver_id=approver_id, decided_at=now, remarks=remarks)
    return od.model_copy(update={
        "institution_gate": gate,
        "final_status": derive_final_status(od.department_gate.status, decision),
        "updated_at": now,
    })


def apply_applicant_edit(od: OnDutyRequest, edit: ODEdit, now: datetime) -> OnDutyRequest:
    if od.final_status != "on_hold":
        raise PreconditionError("Only requests on hold can be edited", final_status=od.final_status)
    changes = {}
    if edit.reason is not None:
        reason = edit.reason.strip()
        if not reason:
            raise ValidationError("Reason is required")
        changes["reason"] = reason
    if edit.participants is not None:
        changes["participants"] = edit.participants
    if edit.date_range is not None:
        changes["date_range"] = edit.date_range
    if edit.time_range is not None:
        changes["time_range"] = edit.time_range
    if edit.attachments is not None:
        changes["attachments"] = edit.attachments
    date_range = changes.get("date_range", od.date_range)
    changes.update({
        "total_days": compute_total_days(date_range.start, date_range.end),
        "department_gate": ApprovalGate(),
        "institution_gate": ApprovalGate(),
        "final_status": "pending",
        "updated_at": now,
    })
    return od.model_copy(update=changes)


class ODWorkflowService:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    def _load(self, od_id) -> OnDutyRequest:
        row = self.store.get("od_requests", od_id)
        if not row:
            raise NotFoundError("OD request not found", od_id=str(od_id))
        return OnDutyRequest.from_record(row)

    def _save(self, before: OnDutyRequest, after: OnDutyRequest) -> OnDutyRequest:
        old, new = before.to_record(), after.to_record()
        changes = {k: v for k, v in new.items() if old.get(k) != v}
        changes["updated_at"] = after.updated_at
        row = self.store.update("od_requests", after.id, changes)
        if row is None:
            raise NotFoundError("OD request not found", od_id=str(after.id))
        return OnDutyRequest.from_record(row)

    def create(self, actor: Actor, data: ODCreate) -> OnDutyRequest:
        require_capability(actor, "od:create")
        reason = data.reason.strip()
        if not reason:
            raise ValidationError("Reason is required")
        if not actor.institution_id:
            raise ValidationError("Applicant has no institution id")
        total_days = compute_total_days(data.date_range.start, data.date_range.end)
        now = self.clock()
        draft = OnDutyRequest(
            id=uuid.uuid4(),
            applicant_id=actor.id,
            applicant=StudentRef(name=actor.name, institution_id=actor.institution_id),
            participants=data.participants,
            reason=reason,
            date_range=data.date_range,
            time_range=data.time_range,
            total_days=total_days,
            attachments=data.attachments or Attachments(),
            created_at=now,
            updated_at=now,
        )
        values = draft.to_record()
        values.update({"id": draft.id, "created_at": now, "updated_at": now})
        od = OnDutyRequest.from_record(self.store.insert("od_requests", values))
        audit_committed_write(self.store, {"od_id": str(od.id)}, "od_request", od.id, "CREATE", actor=actor,
                              context={"total_days": od.total_days, "participants": len(od.participants)})
        logger.info("od_created", od_id=str(od.id), applicant_id=str(actor.id), total_days=od.total_days)
        return od

    def get(self, actor: Actor, od_id) -> OnDutyRequest:
        od = self._load(od_id)
        require_capability(actor, "od:view", od)
        return od

    def list_for(self, actor: Actor, final_status: Optional[str] = None) -> List[OnDutyRequest]:
        """Staff see every request; everyone else sees their own."""
        filters = []
        if not is_staff(actor):
            filters.append(("applicant_id", "eq", actor.id))
        if final_status:
            filters.append(("final_status", "eq", final_status))
        rows = self.store.query("od_requests", filters, order_by="created_at", descending=True)
        return [OnDutyRequest.from_record(r) for r in rows]

    def pending_for(self, actor: Actor) -> List[OnDutyRequest]:
        """Requests waiting on a gate the actor can decide."""
        filters = None
        if in_group(actor, "institution_head") and not in_group(actor, "department_head"):
            filters = [("department_status", "eq", "approved"), ("institution_status", "eq", "pending")]
        elif in_group(actor, "department_head"):
            filters = [("department_status", "eq", "pending")]
        if filters is None:
            return []
        rows = self.store.query("od_requests", filters, order_by="created_at")
        return [OnDutyRequest.from_record(r) for r in rows]

    def _record_decision(self, actor: Actor, gate: str, before: OnDutyRequest, after: OnDutyRequest, decision: str) -> OnDutyRequest:
        saved = self._save(before, after)
        diff = compute_diff(
            {"final_status": before.final_status, f"{gate}_status": getattr(before, f"{gate}_gate").status},
            {"final_status": saved.final_status, f"{gate}_status": getattr(saved, f"{gate}_gate").status},
        )
        committed = {"od_id": str(saved.id), "final_status": saved.final_status}
        audit_committed_write(self.store, committed, "od_request", saved.id, DECISION_AUDIT_ACTIONS[decision],
                              actor=actor, changes_json=diff, context={"gate": gate})
        notify(self.store, saved.applicant_id, "od_decision", {
            "od_id": str(saved.id),
            "gate": gate,
            "decision": decision,
            "final_status": saved.final_status,
            "remarks": getattr(saved, f"{gate}_gate").remarks,
        }, actor=actor)
        logger.info("od_decision_recorded", od_id=str(saved.id), gate=gate, decision=decision,
                    final_status=saved.final_status, approver_id=str(actor.id))
        return saved

    def decide_department(self, actor: Actor, od_id, decision: str, remarks: Optional[str] = None) -> OnDutyRequest:
        require_capability(actor, "od:decide_department")
        od = self._load(od_id)
        updated = apply_department_decision(od, decision, actor.id, remarks, self.clock())
        return self._record_decision(actor, "department", od, updated, decision)

    def decide_institution(self, actor: Actor, od_id, decision: str, remarks: Optional[str] = None) -> OnDutyRequest:
        require_capability(actor, "od:decide_institution")
        od = self._load(od_id)
        updated = apply_institution_decision(od, decision, actor.id, remarks, self.clock())
        return self._record_decision(actor, "institution", od, updated, decision)

    def edit(self, actor: Actor, od_id, edit: ODEdit) -> OnDutyRequest:
        od = self._load(od_id)
        require_capability(actor, "od:edit", od)
        updated = apply_applicant_edit(od, edit, self.clock())
        saved = self._save(od, updated)
        audit_committed_write(self.store, {"od_id": str(saved.id), "final_status": saved.final_status},
                              "od_request", saved.id, "RESUBMIT", actor=actor,
                              changes_json=compute_diff({"total_days": od.total_days}, {"total_days": saved.total_days}))
        logger.info("od_resubmitted", od_id=str(saved.id), total_days=saved.total_days)
        return saved

    def can_download_letter(self, actor: Actor, od: OnDutyRequest) -> bool:
        return od.final_status == "approved" and has_capability(actor, "od:letter", od)
