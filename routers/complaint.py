# routers/complaint.py
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from brain.models import (
    Complaint,
    Entity,
    GeoLocation,
    InputMetadata,
    InputType,
    ProcessedInput,
)
from brain.staff_report_agent import build_staff_report_text
from core.logging import logger
from core.report_pdf import render_staff_report_pdf
from services.container import PipelineContainer


def get_container(request: Request) -> PipelineContainer:
    return request.app.state.container


# ------------------------------------------------------------
# 요청 / 응답 모델
# ------------------------------------------------------------

class EntityIn(BaseModel):
    tag: str
    value: str


class LocationIn(BaseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    address: str = ""


class MetadataIn(BaseModel):
    timestamp: Optional[datetime] = None
    location: Optional[LocationIn] = None
    citizen_id: Optional[str] = None


class ComplaintCreate(BaseModel):
    # 상위 입력 처리 계층(STT/OCR)이 만든 ID 가 없으면 여기서 발급
    id: Optional[str] = None
    text_content: str
    input_type: InputType = InputType.TEXT
    metadata: MetadataIn = Field(default_factory=MetadataIn)
    entities: List[EntityIn] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    def to_processed_input(self) -> ProcessedInput:
        meta = self.metadata
        location = None
        if meta.location is not None:
            location = GeoLocation(
                lat=meta.location.lat, lon=meta.location.lon, address=meta.location.address
            )
        return ProcessedInput(
            id=self.id or str(uuid.uuid4()),
            text_content=self.text_content,
            input_type=self.input_type,
            metadata=InputMetadata(
                timestamp=meta.timestamp or datetime.utcnow(),
                location=location,
                citizen_id=meta.citizen_id,
            ),
            entities=tuple(Entity(tag=e.tag, value=e.value) for e in self.entities),
            keywords=tuple(self.keywords),
        )


class ComplaintAccepted(BaseModel):
    """주민 화면에 바로 보여줄 응답."""
    complaint_id: str
    status: str
    message: str
    tracking_id: Optional[str] = None
    problem_type: Optional[str] = None
    urgency_level: Optional[str] = None
    department: Optional[str] = None


class ComplaintDetail(BaseModel):
    id: str
    status: str
    input_type: str
    citizen_id: Optional[str] = None
    original_text: str
    safety_score: Optional[int] = None
    safety_reasons: List[str] = []
    needs_review: bool = False
    duplicate_of: Optional[str] = None
    problem_type: Optional[str] = None
    secondary_types: List[str] = []
    classification_confidence: Optional[float] = None
    urgency_level: Optional[str] = None
    urgency_reasoning: List[str] = []
    suggested_department: str = ""
    official_summary: str = ""
    tracking_id: Optional[str] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None
    error_detail: str = ""
    history: List[dict] = []

    @classmethod
    def from_complaint(cls, c: Complaint) -> "ComplaintDetail":
        return cls(
            id=c.id,
            status=c.status.value,
            input_type=c.input_type.value,
            citizen_id=c.citizen_id,
            original_text=c.original_text,
            safety_score=c.safety_score,
            safety_reasons=list(c.safety_reasons),
            needs_review=c.needs_review,
            duplicate_of=c.duplicate_of,
            problem_type=c.problem_type.value if c.problem_type else None,
            secondary_types=[t.value for t in c.secondary_types],
            classification_confidence=c.classification_confidence,
            urgency_level=c.urgency_level.value if c.urgency_level else None,
            urgency_reasoning=list(c.urgency_reasoning),
            suggested_department=c.suggested_department,
            official_summary=c.official_summary,
            tracking_id=c.tracking_id,
            created_at=c.created_at,
            submitted_at=c.submitted_at,
            error_detail=c.error_detail,
            history=list(c.history),
        )


class AuditOut(BaseModel):
    attempt: int
    outcome: str
    timestamp: datetime
    error: str = ""


router = APIRouter(prefix="/api/complaints", tags=["complaints"])


def _load(container: PipelineContainer, complaint_id: str) -> Complaint:
    complaint = container.repository.get(complaint_id)
    if complaint is None:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return complaint


# ------------------------------------------------------------
# 접수
# ------------------------------------------------------------

@router.post("", response_model=ComplaintAccepted, summary="민원 접수")
def create_complaint(
    payload: ComplaintCreate,
    background_tasks: BackgroundTasks,
    container: PipelineContainer = Depends(get_container),
):
    """
    - REPORT_GENERATED 까지는 요청 안에서 처리하고 주민 응답을 바로 돌려준다.
    - 지자체 전송(재시도/백오프 포함)은 응답 후 백그라운드에서 진행.
    """
    data = payload.to_processed_input()
    if container.repository.get(data.id) is not None:
        raise HTTPException(status_code=409, detail="Complaint id already exists")

    result = container.machine.process(data)
    complaint = result.complaint

    if complaint.tracking_id and not complaint.is_terminal:
        background_tasks.add_task(container.machine.deliver, complaint.id)

    logger.info(f"[api] complaint {complaint.id} -> {complaint.status.value}")
    return ComplaintAccepted(
        complaint_id=complaint.id,
        status=complaint.status.value,
        message=result.message,
        tracking_id=result.tracking_id,
        problem_type=complaint.problem_type.value if complaint.problem_type else None,
        urgency_level=complaint.urgency_level.value if complaint.urgency_level else None,
        department=complaint.suggested_department or None,
    )


# ------------------------------------------------------------
# 조회
# ------------------------------------------------------------

@router.get("/{complaint_id}", response_model=ComplaintDetail, summary="민원 상세")
def get_complaint(complaint_id: str, container: PipelineContainer = Depends(get_container)):
    return ComplaintDetail.from_complaint(_load(container, complaint_id))


@router.get("/{complaint_id}/audit", response_model=List[AuditOut], summary="지자체 전송 이력")
def get_complaint_audit(complaint_id: str, container: PipelineContainer = Depends(get_container)):
    _load(container, complaint_id)
    return [
        AuditOut(attempt=r.attempt, outcome=r.outcome, timestamp=r.timestamp, error=r.error)
        for r in container.audit_log.list_for(complaint_id)
    ]


@router.get("/{complaint_id}/report", response_class=PlainTextResponse, summary="담당자용 보고서")
def get_complaint_report(complaint_id: str, container: PipelineContainer = Depends(get_container)):
    complaint = _load(container, complaint_id)
    if complaint.report is None:
        raise HTTPException(status_code=409, detail="Report has not been generated")
    return build_staff_report_text(complaint.report)


@router.get("/{complaint_id}/report.pdf", summary="담당자용 보고서 PDF")
def get_complaint_report_pdf(complaint_id: str, container: PipelineContainer = Depends(get_container)):
    complaint = _load(container, complaint_id)
    if complaint.report is None:
        raise HTTPException(status_code=409, detail="Report has not been generated")

    filename = f"{complaint.tracking_id or complaint.id}.pdf"
    return Response(
        content=render_staff_report_pdf(complaint.report),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
