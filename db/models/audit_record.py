# db/models/audit_record.py
from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text

from db.session import Base


class AuditRecordRow(Base):
    """지자체 전송 시도 이력. INSERT 만 하고 UPDATE/DELETE 는 하지 않는다."""

    __tablename__ = "audit_records"

    audit_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    complaint_id = Column(String(64), nullable=False, index=True)
    attempt = Column(Integer, nullable=False)
    outcome = Column(String(20), nullable=False)     # SUCCESS / TRANSIENT_ERROR / PERMANENT_ERROR
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
