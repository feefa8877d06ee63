# -*- coding: utf-8 -*-
"""
brain.stores

파이프라인이 바깥 저장소/알림 채널을 쓰는 좁은 인터페이스와
메모리 구현(테스트, CLI 데모용)을 모아 둔 모듈.

- ComplaintRepository : save / get / list_by_status
- AuditLog            : append / list_for   (추가만 가능)
- NotificationSink    : notify_citizen / alert_admin

SQLAlchemy 구현은 services/complaint_service.py 에 있다.
"""

from __future__ import annotations

import copy
import threading
from typing import Dict, List, Optional, Protocol

from core.logging import log_event, logger

from .models import AuditRecord, Complaint, ComplaintStatus


class ComplaintRepository(Protocol):
    def save(self, complaint: Complaint) -> None: ...

    def get(self, complaint_id: str) -> Optional[Complaint]: ...

    def list_by_status(self, status: ComplaintStatus) -> List[Complaint]: ...


class AuditLog(Protocol):
    def append(self, record: AuditRecord) -> None: ...

    def list_for(self, complaint_id: str) -> List[AuditRecord]: ...


class NotificationSink(Protocol):
    def notify_citizen(self, complaint: Complaint, message: str) -> None: ...

    def alert_admin(self, subject: str, detail: str) -> None: ...


# ---------------------------------------------------------
# 메모리 구현
# ---------------------------------------------------------

class InMemoryComplaintRepository:
    """저장 시점의 스냅샷을 보관한다 (호출자가 들고 있는 객체와 분리)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: Dict[str, Complaint] = {}

    def save(self, complaint: Complaint) -> None:
        with self._lock:
            self._items[complaint.id] = copy.deepcopy(complaint)

    def get(self, complaint_id: str) -> Optional[Complaint]:
        with self._lock:
            found = self._items.get(complaint_id)
            return copy.deepcopy(found) if found else None

    def list_by_status(self, status: ComplaintStatus) -> List[Complaint]:
        with self._lock:
            return [copy.deepcopy(c) for c in self._items.values() if c.status == status]


class InMemoryAuditLog:
    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[AuditRecord] = []

    def append(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_for(self, complaint_id: str) -> List[AuditRecord]:
        with self._lock:
            return [r for r in self._records if r.complaint_id == complaint_id]


class LoggingNotificationSink:
    """
    실제 문자/메일 발송 대신 로그 + JSONL 이벤트로 남기는 기본 알림 채널.
    """

    def __init__(self):
        self.sent: List[Dict[str, str]] = []

    def notify_citizen(self, complaint: Complaint, message: str) -> None:
        logger.info(f"[notify] citizen={complaint.citizen_id or '-'} complaint={complaint.id}: {message}")
        log_event(complaint.id, {"type": "citizen_notification", "message": message})
        self.sent.append({"to": "citizen", "complaint_id": complaint.id, "message": message})

    def alert_admin(self, subject: str, detail: str) -> None:
        logger.error(f"[admin-alert] {subject}: {detail}")
        self.sent.append({"to": "admin", "subject": subject, "message": detail})
