# db/models/complaint.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.sql import func

from db.session import Base


class ComplaintRecord(Base):
    """민원 1건의 현재 상태. 파이프라인이 단계를 넘길 때마다 통째로 덮어쓴다."""

    __tablename__ = "complaints"

    id = Column(String(64), primary_key=True, index=True)
    input_type = Column(String(10), nullable=False)
    citizen_id = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False, index=True)

    original_text = Column(Text, nullable=False)
    processed_text = Column(Text, nullable=True)
    entities = Column(JSON, nullable=False, default=list)        # [{"tag": ..., "value": ...}]
    keywords = Column(JSON, nullable=False, default=list)
    geolocation = Column(JSON, nullable=True)                    # {"lat", "lon", "address"}

    safety_score = Column(Integer, nullable=True)
    safety_reasons = Column(JSON, nullable=False, default=list)
    needs_review = Column(Boolean, nullable=False, default=False)
    duplicate_of = Column(String(64), nullable=True)

    problem_type = Column(String(30), nullable=True)             # ROAD_DAMAGE 등
    secondary_types = Column(JSON, nullable=False, default=list)
    classification_confidence = Column(Float, nullable=True)
    urgency_level = Column(String(10), nullable=True)            # LOW / MEDIUM / HIGH
    urgency_reasoning = Column(JSON, nullable=False, default=list)
    analyzed_at = Column(DateTime, nullable=True)

    suggested_department = Column(String(200), nullable=True)
    official_summary = Column(Text, nullable=True)               # 직원용 5~8줄 요약
    citizen_confirmation = Column(Text, nullable=True)
    tracking_id = Column(String(20), nullable=True, index=True)
    report = Column(JSON, nullable=True)                         # 지자체로 보낸 payload

    submitted_at = Column(DateTime, nullable=True)
    error_detail = Column(Text, nullable=True)
    history = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
