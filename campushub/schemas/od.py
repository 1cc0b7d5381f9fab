import uuid
from datetime import date, datetime, time
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, Field, field_validator


GateStatus = Literal["pending", "approved", "rejected", "on_hold"]
GATE_STATUSES = set(get_args(GateStatus))
DECISIONS = {"approved", "rejected", "on_hold"}


class StudentRef(BaseModel):
    name: str
    institution_id: str

    @field_validator("institution_id")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class DateRange(BaseModel):
    start: date = Field(alias="from")
    end: date = Field(alias="to")

    model_config = {"populate_by_name": True}


class TimeRange(BaseModel):
    start: time = Field(alias="from")
    end: time = Field(alias="to")

    model_config = {"populate_by_name": True}


class Attachments(BaseModel):
    letter_url: Optional[str] = None
    proof_url: Optional[str] = None


class ApprovalGate(BaseModel):
    status: GateStatus = "pending"
    approver_id: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None
    remarks: Optional[str] = None


class OnDutyRequest(BaseModel):
    id: uuid.UUID
    applicant_id: uuid.UUID
    applicant: StudentRef
    participants: List[StudentRef] = []
    reason: str
    date_range: DateRange
    time_range: Optional[TimeRange] = None
    total_days: int
    attachments: Attachments = Attachments()
    department_gate: ApprovalGate = ApprovalGate()
    institution_gate: ApprovalGate = ApprovalGate()
    final_status: GateStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, row: dict) -> "OnDutyRequest":
        time_range = None
        if row.get("from_time") is not None and row.get("to_time") is not None:
            time_range = TimeRange(start=row["from_time"], end=row["to_time"])
        return cls(
            id=row["id"],
            applicant_id=row["applicant_id"],
            applicant=StudentRef(name=row["applicant_name"], institution_id=row["applicant_institution_id"]),
            participants=[StudentRef(**p) for p in (row.get("participants") or [])],
            reason=row["reason"],
            date_range=DateRange(start=row["from_date"], end=row["to_date"]),
            time_range=time_range,
            total_days=row["total_days"],
            attachments=Attachments(letter_url=row.get("letter_url"), proof_url=row.get("proof_url")),
            department_gate=ApprovalGate(
                status=row["department_status"],
                approver_id=row.get("department_approver_id"),
                decided_at=row.get("department_decided_at"),
                remarks=row.get("department_remarks"),
            ),
            institution_gate=ApprovalGate(
                status=row["institution_status"],
                approver_id=row.get("institution_approver_id"),
                decided_at=row.get("institution_decided_at"),
                remarks=row.get("institution_remarks"),
            ),
            final_status=row["final_status"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_record(self) -> dict:
        """Flatten into od_requests columns (id excluded)."""
        return {
            "applicant_id": self.applicant_id,
            "applicant_name": self.applicant.name,
            "applicant_institution_id": self.applicant.institution_id,
            "participants": [p.model_dump() for p in self.participants],
            "reason": self.reason,
            "from_date": self.date_range.start,
            "to_date": self.date_range.end,
            "from_time": self.time_range.start if self.time_range else None,
            "to_time": self.time_range.end if self.time_range else None,
            "total_days": self.total_days,
            "letter_url": self.attachments.letter_url,
            "proof_url": self.attachments.proof_url,
            "department_status": self.department_gate.status,
            "department_approver_id": self.department_gate.approver_id,
            "department_decided_at": self.department_gate.decided_at,
            "department_remarks": self.department_gate.remarks,
            "institution_status": self.institution_gate.status,
            "institution_approver_id": self.institution_gate.approver_id,
            "institution_decided_at": self.institution_gate.decided_at,
            "institution_remarks": self.institution_gate.remarks,
            "final_status": self.final_status,
        }


class ODCreate(BaseModel):
    participants: List[StudentRef] = []
    reason: str
    date_range: DateRange
    time_range: Optional[TimeRange] = None
    attachments: Optional[Attachments] = None


class ODEdit(BaseModel):
    """Fields an applicant may re-submit while the request is on hold."""

    participants: Optional[List[StudentRef]] = None
    reason: Optional[str] = None
    date_range: Optional[DateRange] = None
    time_range: Optional[TimeRange] = None
    attachments: Optional[Attachments] = None


class ODDecision(BaseModel):
    decision: str
    remarks: Optional[str] = None
