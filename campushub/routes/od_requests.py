from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ..auth.security import get_current_actor
from ..config import settings
from ..documents.approval_letter import create_approval_letter_pdf
from ..errors import PreconditionError
from ..schemas.auth import Actor
from ..schemas.od import GATE_STATUSES, ODCreate, ODDecision, ODEdit
from ..services.change_feed import publish_from_thread
from ..services.od_workflow import ODWorkflowService
from ..services.permissions import require_capability
from ..store import RecordStore, get_store


router = APIRouter(prefix="/od-requests", tags=["od-requests"])


def get_service(store: RecordStore = Depends(get_store)) -> ODWorkflowService:
    return ODWorkflowService(store)


@router.post("")
def create_od_request(payload: ODCreate, svc: ODWorkflowService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    od = svc.create(me, payload)
    publish_from_thread("od_requests", od.id, "insert")
    return od


@router.get("")
def list_od_requests(
    final_status: Optional[str] = None,
    svc: ODWorkflowService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    if final_status and final_status not in GATE_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status filter")
    return svc.list_for(me, final_status)


@router.get("/pending")
def list_pending_decisions(svc: ODWorkflowService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    """Requests waiting on a gate the caller can decide."""
    return svc.pending_for(me)


@router.get("/{od_id}")
def get_od_request(od_id: str, svc: ODWorkflowService = Depends(get_service), me: Actor = Depends(get_current_actor)):
    od = svc.get(me, od_id)
    return {**od.model_dump(mode="json", by_alias=True), "can_download_letter": svc.can_download_letter(me, od)}


@router.post("/{od_id}/department-decision")
def department_decision(
    od_id: str,
    payload: ODDecision,
    svc: ODWorkflowService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    od = svc.decide_department(me, od_id, payload.decision, payload.remarks)
    publish_from_thread("od_requests", od.id, "update")
    return od


@router.post("/{od_id}/institution-decision")
def institution_decision(
    od_id: str,
    payload: ODDecision,
    svc: ODWorkflowService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    od = svc.decide_institution(me, od_id, payload.decision, payload.remarks)
    publish_from_thread("od_requests", od.id, "update")
    return od


@router.patch("/{od_id}")
def edit_od_request(
    od_id: str,
    payload: ODEdit,
    svc: ODWorkflowService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    od = svc.edit(me, od_id, payload)
    publish_from_thread("od_requests", od.id, "update")
    return od


def _user_name(store: RecordStore, user_id) -> str:
    if user_id is None:
        return "-"
    row = store.get("users", user_id)
    return row["full_name"] if row else "-"


@router.get("/{od_id}/letter")
def download_letter(
    od_id: str,
    svc: ODWorkflowService = Depends(get_service),
    me: Actor = Depends(get_current_actor),
):
    od = svc.get(me, od_id)
    if od.final_status != "approved":
        raise PreconditionError("Letter is available only for approved requests", final_status=od.final_status)
    require_capability(me, "od:letter", od)
    pdf = create_approval_letter_pdf(
        od,
        department_approver=_user_name(svc.store, od.department_gate.approver_id),
        institution_approver=_user_name(svc.store, od.institution_gate.approver_id),
        verify_url=f"{settings.public_base_url}/od-requests/{od.id}",
    )
    filename = f"od-approval-{od.applicant.institution_id}-{od.date_range.start.isoformat()}.pdf"
    return StreamingResponse(pdf, media_type="application/pdf",
                             headers={"Content-Disposition": f'attachment; filename="{filename}"'})
