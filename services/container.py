# services/container.py
"""민원 파이프라인 의존성 조립."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

import httpx
from sqlalchemy.orm import sessionmaker

from brain.classifier import ClassificationEngine
from brain.dedup import DedupGate, DuplicateWindow
from brain.retry_driver import RetryDriver
from brain.routing import DepartmentDirectory, DepartmentRouter
from brain.safety import SafetyGate
from brain.state_machine import ComplaintStateMachine
from brain.stores import (
    AuditLog,
    ComplaintRepository,
    InMemoryAuditLog,
    InMemoryComplaintRepository,
    LoggingNotificationSink,
    NotificationSink,
)
from brain.submitter import CircuitBreaker, MunicipalClient, MunicipalSubmitter, RetryQueue
from brain.summarizer import ReportComposer
from brain.urgency import UrgencyAssessor
from core import config


@dataclass
class PipelineContainer:
    repository: ComplaintRepository
    audit_log: AuditLog
    notifier: NotificationSink
    directory: DepartmentDirectory
    submitter: MunicipalSubmitter
    machine: ComplaintStateMachine
    retry_driver: RetryDriver


def build_container(
    *,
    repository: Optional[ComplaintRepository] = None,
    audit_log: Optional[AuditLog] = None,
    notifier: Optional[NotificationSink] = None,
    department_config: Optional[Union[str, Path]] = None,
    directory: Optional[DepartmentDirectory] = None,
    municipal_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    submitter: Optional[MunicipalSubmitter] = None,
) -> PipelineContainer:
    """설정값(core.config)으로 파이프라인 전체를 조립한다. 인자로 준 것만 교체."""

    # 비어 있는(len 0) 저장소도 주입된 그대로 사용
    if repository is None:
        repository = InMemoryComplaintRepository()
    if audit_log is None:
        audit_log = InMemoryAuditLog()
    if notifier is None:
        notifier = LoggingNotificationSink()
    if directory is None:
        directory = DepartmentDirectory.from_file(department_config or config.DEPARTMENT_CONFIG_PATH)

    if submitter is None:
        client = MunicipalClient(
            url=municipal_url or config.MUNICIPAL_API_URL,
            token=config.MUNICIPAL_API_TOKEN,
            timeout=config.MUNICIPAL_TIMEOUT_SECONDS,
            transport=transport,
        )
        submitter = MunicipalSubmitter(
            client=client,
            audit_log=audit_log,
            breaker=CircuitBreaker(
                failure_threshold=config.BREAKER_FAILURE_THRESHOLD,
                cooldown_seconds=config.BREAKER_COOLDOWN_SECONDS,
            ),
            queue=RetryQueue(),
            notifier=notifier,
            max_attempts=config.SUBMIT_MAX_ATTEMPTS,
            backoff_base=config.SUBMIT_BACKOFF_BASE,
            backoff_max=config.SUBMIT_BACKOFF_MAX,
        )

    dedup = DedupGate(
        store=DuplicateWindow(threshold=config.DEDUP_SIMILARITY_THRESHOLD),
        window=timedelta(hours=config.DEDUP_WINDOW_HOURS),
    )

    machine = ComplaintStateMachine(
        repository=repository,
        safety=SafetyGate(),
        dedup=dedup,
        classifier=ClassificationEngine(),
        urgency=UrgencyAssessor(),
        router=DepartmentRouter(directory),
        composer=ReportComposer(),
        submitter=submitter,
        notifier=notifier,
    )

    return PipelineContainer(
        repository=repository,
        audit_log=audit_log,
        notifier=notifier,
        directory=directory,
        submitter=submitter,
        machine=machine,
        retry_driver=RetryDriver(machine),
    )


def build_sql_container(session_factory: Optional[sessionmaker] = None, **kwargs) -> PipelineContainer:
    """complaints / audit_records 테이블을 쓰는 컨테이너."""
    from db.session import SessionLocal
    from services.complaint_service import SqlAuditLog, SqlComplaintRepository

    factory = session_factory or SessionLocal
    return build_container(
        repository=SqlComplaintRepository(factory),
        audit_log=SqlAuditLog(factory),
        **kwargs,
    )


def build_default_container() -> PipelineContainer:
    """USE_DB 설정에 따라 SQL / 메모리 저장소 선택."""
    if config.USE_DB:
        return build_sql_container()
    return build_container()
