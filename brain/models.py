# -*- coding: utf-8 -*-
"""
brain.models

민원 파이프라인 전 단계가 공유하는 데이터 구조 모음.

- 열거형(ProblemType, UrgencyLevel, ComplaintStatus ...)은 문자열 Enum 으로 정의해
  DB/JSON 에 그대로 저장할 수 있게 한다.
- Complaint 는 파이프라인 한 번의 실행 동안 "현재 단계"만 수정하는 중심 레코드.
  상태 전이는 Complaint.transition 으로만 일어나며, 허용되지 않은 전이는 예외.
- 각 단계 결과(SafetyVerdict, Classification, UrgencyAssessment, Route ...)는
  불변(frozen) dataclass 로 돌려준다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidTransition


# ---------------------------------------------------------
# 1. 열거형
# ---------------------------------------------------------

class ProblemType(str, Enum):
    GARBAGE_SANITATION = "GARBAGE_SANITATION"
    ROAD_DAMAGE = "ROAD_DAMAGE"
    STREET_LIGHTS = "STREET_LIGHTS"
    WATER_SUPPLY = "WATER_SUPPLY"
    TRAFFIC_SAFETY = "TRAFFIC_SAFETY"
    GENERAL_CIVIC = "GENERAL_CIVIC"

    @property
    def label(self) -> str:
        return PROBLEM_TYPE_LABELS[self]


PROBLEM_TYPE_LABELS: Dict[ProblemType, str] = {
    ProblemType.GARBAGE_SANITATION: "Garbage and sanitation",
    ProblemType.ROAD_DAMAGE: "Road damage",
    ProblemType.STREET_LIGHTS: "Street lights",
    ProblemType.WATER_SUPPLY: "Water supply",
    ProblemType.TRAFFIC_SAFETY: "Traffic safety",
    ProblemType.GENERAL_CIVIC: "General civic issue",
}


class UrgencyLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ComplaintStatus(str, Enum):
    RECEIVED = "RECEIVED"
    PROCESSING = "PROCESSING"
    ANALYZED = "ANALYZED"
    REPORT_GENERATED = "REPORT_GENERATED"
    SUBMITTED = "SUBMITTED"
    QUEUED = "QUEUED"
    FAILED = "FAILED"
    FILTERED = "FILTERED"
    ERROR = "ERROR"


class SafetyDecision(str, Enum):
    PASS = "PASS"
    FLAG = "FLAG"
    REJECT = "REJECT"


class SubmissionOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    QUEUED = "QUEUED"
    FAILED = "FAILED"


class InputType(str, Enum):
    TEXT = "TEXT"
    VOICE = "VOICE"
    IMAGE = "IMAGE"


# 상태 전이표: 현재 상태 -> 갈 수 있는 상태들
ALLOWED_TRANSITIONS: Dict[ComplaintStatus, Tuple[ComplaintStatus, ...]] = {
    ComplaintStatus.RECEIVED: (ComplaintStatus.PROCESSING, ComplaintStatus.ERROR),
    ComplaintStatus.PROCESSING: (
        ComplaintStatus.ANALYZED,
        ComplaintStatus.FILTERED,
        ComplaintStatus.ERROR,
    ),
    ComplaintStatus.ANALYZED: (ComplaintStatus.REPORT_GENERATED, ComplaintStatus.ERROR),
    ComplaintStatus.REPORT_GENERATED: (
        ComplaintStatus.SUBMITTED,
        ComplaintStatus.QUEUED,
        ComplaintStatus.FAILED,
        ComplaintStatus.ERROR,
    ),
    # QUEUED 는 백그라운드 재전송 드라이버만 빠져나오게 한다
    ComplaintStatus.QUEUED: (ComplaintStatus.SUBMITTED, ComplaintStatus.FAILED),
    ComplaintStatus.SUBMITTED: (),
    ComplaintStatus.FAILED: (),
    ComplaintStatus.FILTERED: (),
    ComplaintStatus.ERROR: (),
}

TERMINAL_STATUSES = frozenset(
    s for s, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# ANALYZED 이후 단계들 (분류/긴급도 필드가 반드시 채워져 있어야 함)
ANALYZED_OR_LATER = frozenset(
    {
        ComplaintStatus.ANALYZED,
        ComplaintStatus.REPORT_GENERATED,
        ComplaintStatus.SUBMITTED,
        ComplaintStatus.QUEUED,
        ComplaintStatus.FAILED,
    }
)


# ---------------------------------------------------------
# 2. 입력 구조 (상위 입력 처리 계층이 넘겨주는 값)
# ---------------------------------------------------------

@dataclass(frozen=True)
class Entity:
    """상위 추출기가 태깅한 문자열 하나. (예: location / 'main street')"""
    tag: str
    value: str


@dataclass(frozen=True)
class GeoLocation:
    lat: Optional[float] = None
    lon: Optional[float] = None
    address: str = ""


@dataclass(frozen=True)
class InputMetadata:
    timestamp: datetime
    location: Optional[GeoLocation] = None
    citizen_id: Optional[str] = None


@dataclass(frozen=True)
class ProcessedInput:
    id: str
    text_content: str
    input_type: InputType
    metadata: InputMetadata
    entities: Tuple[Entity, ...] = ()
    keywords: Tuple[str, ...] = ()


# ---------------------------------------------------------
# 3. 단계별 결과
# ---------------------------------------------------------

@dataclass(frozen=True)
class SafetyVerdict:
    score: int
    reasons: Tuple[str, ...]
    decision: SafetyDecision


@dataclass(frozen=True)
class DedupResult:
    is_duplicate: bool
    original_id: Optional[str] = None


@dataclass(frozen=True)
class Classification:
    primary: ProblemType
    secondary: Tuple[ProblemType, ...]
    confidence: float
    low_confidence: bool = False


@dataclass(frozen=True)
class UrgencyAssessment:
    level: UrgencyLevel
    reasoning: Tuple[str, ...]
    score: int


@dataclass(frozen=True)
class ContactInfo:
    phone: str = ""
    email: str = ""


@dataclass(frozen=True)
class Route:
    department: str
    contact: ContactInfo
    escalation: Tuple[str, ...] = ()
    fallback: bool = False


@dataclass(frozen=True)
class StructuredReport:
    complaint_id: str
    problem_type: ProblemType
    secondary_types: Tuple[ProblemType, ...]
    urgency_level: UrgencyLevel
    urgency_reasoning: Tuple[str, ...]
    official_summary: str
    suggested_department: str
    department_contact: ContactInfo
    citizen_confirmation: str
    tracking_id: str
    timestamp: datetime
    needs_review: bool = False
    simplified: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """지자체 연동 API 로 보내는 JSON 바디."""
        return {
            "complaintId": self.complaint_id,
            "trackingId": self.tracking_id,
            "problemType": self.problem_type.value,
            "secondaryTypes": [t.value for t in self.secondary_types],
            "urgencyLevel": self.urgency_level.value,
            "urgencyReasoning": list(self.urgency_reasoning),
            "officialSummary": self.official_summary,
            "suggestedDepartment": self.suggested_department,
            "departmentContact": {
                "phone": self.department_contact.phone,
                "email": self.department_contact.email,
            },
            "needsReview": self.needs_review,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class AuditRecord:
    """지자체 전송 시도 1회의 결과. 추가(append)만 되고 수정되지 않는다."""
    complaint_id: str
    attempt: int
    outcome: str
    timestamp: datetime
    error: str = ""


# ---------------------------------------------------------
# 4. 중심 레코드: Complaint
# ---------------------------------------------------------

@dataclass
class Complaint:
    id: str
    input_type: InputType
    original_text: str
    created_at: datetime
    citizen_id: Optional[str] = None
    processed_text: str = ""
    entities: Tuple[Entity, ...] = ()
    keywords: Tuple[str, ...] = ()
    geolocation: Optional[GeoLocation] = None

    status: ComplaintStatus = ComplaintStatus.RECEIVED

    # SafetyGate
    safety_score: Optional[int] = None
    safety_reasons: List[str] = field(default_factory=list)
    needs_review: bool = False

    # DedupGate
    duplicate_of: Optional[str] = None

    # Classification / Urgency
    problem_type: Optional[ProblemType] = None
    secondary_types: List[ProblemType] = field(default_factory=list)
    classification_confidence: Optional[float] = None
    urgency_level: Optional[UrgencyLevel] = None
    urgency_reasoning: List[str] = field(default_factory=list)
    analyzed_at: Optional[datetime] = None

    # Routing / Report
    suggested_department: str = ""
    official_summary: str = ""
    citizen_confirmation: str = ""
    tracking_id: Optional[str] = None
    report: Optional[StructuredReport] = None

    # Submission
    submitted_at: Optional[datetime] = None
    error_detail: str = ""

    history: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_input(cls, data: ProcessedInput) -> "Complaint":
        meta = data.metadata
        return cls(
            id=data.id,
            input_type=data.input_type,
            original_text=data.text_content,
            created_at=meta.timestamp,
            citizen_id=meta.citizen_id,
            entities=tuple(data.entities),
            keywords=tuple(data.keywords),
            geolocation=meta.location,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, target: ComplaintStatus, at: Optional[datetime] = None) -> None:
        """허용된 전이만 수행하고 history 에 기록한다."""
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status.value, target.value)
        when = at or datetime.utcnow()
        self.history.append(
            {"from": self.status.value, "to": target.value, "at": when.isoformat()}
        )
        self.status = target
