# services/complaint_service.py
"""
SQLAlchemy 기반 저장소 구현.

- SqlComplaintRepository : complaints 테이블에 민원 1건 = 1행 upsert
- SqlAuditLog            : audit_records 테이블에 전송 시도 INSERT

brain.stores 의 ComplaintRepository / AuditLog 인터페이스와 같은 메서드를 가진다.
세션은 호출마다 새로 열고 닫는다 (FastAPI 요청 스레드, 재전송 태스크가 같이 씀).
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from brain.models import (
    AuditRecord,
    Complaint,
    ComplaintStatus,
    ContactInfo,
    Entity,
    GeoLocation,
    InputType,
    ProblemType,
    StructuredReport,
    UrgencyLevel,
)
from db.models.audit_record import AuditRecordRow
from db.models.complaint import ComplaintRecord


@contextmanager
def _session_scope(factory: sessionmaker) -> Iterator[Session]:
    db: Session = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ---------------------------------------------------------
# Complaint <-> ComplaintRecord 변환
# ---------------------------------------------------------

def report_to_dict(report: StructuredReport) -> Dict[str, Any]:
    data = report.to_payload()
    data["citizenConfirmation"] = report.citizen_confirmation
    data["simplified"] = report.simplified
    return data


def report_from_dict(data: Dict[str, Any]) -> StructuredReport:
    contact = data.get("departmentContact") or {}
    return StructuredReport(
        complaint_id=data["complaintId"],
        problem_type=ProblemType(data["problemType"]),
        secondary_types=tuple(ProblemType(t) for t in data.get("secondaryTypes", [])),
        urgency_level=UrgencyLevel(data["urgencyLevel"]),
        urgency_reasoning=tuple(data.get("urgencyReasoning", [])),
        official_summary=data["officialSummary"],
        suggested_department=data["suggestedDepartment"],
        department_contact=ContactInfo(
            phone=contact.get("phone", ""), email=contact.get("email", "")
        ),
        citizen_confirmation=data.get("citizenConfirmation", ""),
        tracking_id=data["trackingId"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        needs_review=bool(data.get("needsReview", False)),
        simplified=bool(data.get("simplified", False)),
    )


def _apply(row: ComplaintRecord, complaint: Complaint) -> None:
    row.input_type = complaint.input_type.value
    row.citizen_id = complaint.citizen_id
    row.status = complaint.status.value
    row.original_text = complaint.original_text
    row.processed_text = complaint.processed_text
    row.entities = [{"tag": e.tag, "value": e.value} for e in complaint.entities]
    row.keywords = list(complaint.keywords)
    geo = complaint.geolocation
    row.geolocation = (
        {"lat": geo.lat, "lon": geo.lon, "address": geo.address} if geo else None
    )
    row.safety_score = complaint.safety_score
    row.safety_reasons = list(complaint.safety_reasons)
    row.needs_review = complaint.needs_review
    row.duplicate_of = complaint.duplicate_of
    row.problem_type = complaint.problem_type.value if complaint.problem_type else None
    row.secondary_types = [t.value for t in complaint.secondary_types]
    row.classification_confidence = complaint.classification_confidence
    row.urgency_level = complaint.urgency_level.value if complaint.urgency_level else None
    row.urgency_reasoning = list(complaint.urgency_reasoning)
    row.analyzed_at = complaint.analyzed_at
    row.suggested_department = complaint.suggested_department
    row.official_summary = complaint.official_summary
    row.citizen_confirmation = complaint.citizen_confirmation
    row.tracking_id = complaint.tracking_id
    row.report = report_to_dict(complaint.report) if complaint.report else None
    row.submitted_at = complaint.submitted_at
    row.error_detail = complaint.error_detail
    row.history = list(complaint.history)
    row.created_at = complaint.created_at


def record_to_complaint(row: ComplaintRecord) -> Complaint:
    geo = row.geolocation
    return Complaint(
        id=row.id,
        input_type=InputType(row.input_type),
        original_text=row.original_text,
        created_at=row.created_at,
        citizen_id=row.citizen_id,
        processed_text=row.processed_text or "",
        entities=tuple(Entity(tag=e["tag"], value=e["value"]) for e in row.entities or []),
        keywords=tuple(row.keywords or []),
        geolocation=GeoLocation(**geo) if geo else None,
        status=ComplaintStatus(row.status),
        safety_score=row.safety_score,
        safety_reasons=list(row.safety_reasons or []),
        needs_review=bool(row.needs_review),
        duplicate_of=row.duplicate_of,
        problem_type=ProblemType(row.problem_type) if row.problem_type else None,
        secondary_types=[ProblemType(t) for t in row.secondary_types or []],
        classification_confidence=row.classification_confidence,
        urgency_level=UrgencyLevel(row.urgency_level) if row.urgency_level else None,
        urgency_reasoning=list(row.urgency_reasoning or []),
        analyzed_at=row.analyzed_at,
        suggested_department=row.suggested_department or "",
        official_summary=row.official_summary or "",
        citizen_confirmation=row.citizen_confirmation or "",
        tracking_id=row.tracking_id,
        report=report_from_dict(row.report) if row.report else None,
        submitted_at=row.submitted_at,
        error_detail=row.error_detail or "",
        history=list(row.history or []),
    )


# ---------------------------------------------------------
# 저장소 구현
# ---------------------------------------------------------

class SqlComplaintRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, complaint: Complaint) -> None:
        """있으면 갱신, 없으면 새로 INSERT."""
        with _session_scope(self.session_factory) as db:
            row: Optional[ComplaintRecord] = db.get(ComplaintRecord, complaint.id)
            if row is None:
                row = ComplaintRecord(id=complaint.id)
                db.add(row)
            _apply(row, complaint)

    def get(self, complaint_id: str) -> Optional[Complaint]:
        with _session_scope(self.session_factory) as db:
            row = db.get(ComplaintRecord, complaint_id)
            return record_to_complaint(row) if row else None

    def list_by_status(self, status: ComplaintStatus) -> List[Complaint]:
        with _session_scope(self.session_factory) as db:
            rows = (
                db.query(ComplaintRecord)
                .filter(ComplaintRecord.status == status.value)
                .order_by(ComplaintRecord.created_at.asc())
                .all()
            )
            return [record_to_complaint(r) for r in rows]


class SqlAuditLog:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def append(self, record: AuditRecord) -> None:
        with _session_scope(self.session_factory) as db:
            db.add(
                AuditRecordRow(
                    complaint_id=record.complaint_id,
                    attempt=record.attempt,
                    outcome=record.outcome,
                    error=record.error or None,
                    created_at=record.timestamp,
                )
            )

    def list_for(self, complaint_id: str) -> List[AuditRecord]:
        with _session_scope(self.session_factory) as db:
            rows = (
                db.query(AuditRecordRow)
                .filter(AuditRecordRow.complaint_id == complaint_id)
                .order_by(AuditRecordRow.audit_id.asc())
                .all()
            )
            return [
                AuditRecord(
                    complaint_id=r.complaint_id,
                    attempt=r.attempt,
                    outcome=r.outcome,
                    timestamp=r.created_at,
                    error=r.error or "",
                )
                for r in rows
            ]
