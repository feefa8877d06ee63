from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

import core.logging
from brain.models import Entity, GeoLocation, InputMetadata, InputType, ProcessedInput
from brain.routing import DepartmentDirectory
from brain.stores import InMemoryAuditLog, InMemoryComplaintRepository, LoggingNotificationSink
from brain.submitter import CircuitBreaker, MunicipalClient, MunicipalSubmitter, RetryQueue
from services.container import PipelineContainer, build_container

MAPPING = {
    "version": "test-1",
    "general": {
        "department": "Citizen Service Center",
        "contact": {"phone": "311", "email": "service@city.test"},
        "escalation": ["Duty Officer"],
    },
    "departments": {
        "ROAD_DAMAGE": {
            "department": "Department of Public Works - Roads",
            "contact": {"phone": "555-0101", "email": "roads@city.test"},
            "escalation": ["Roads Supervisor", "Public Works Director"],
        },
        "WATER_SUPPLY": {
            "department": "Water and Sewer Utility",
            "contact": {"phone": "555-0104", "email": "water@city.test"},
            "escalation": ["Utility Dispatcher"],
        },
        "STREET_LIGHTS": {
            "department": "Street Lighting Division",
            "contact": {"phone": "", "email": ""},
        },
        "TRAFFIC_SAFETY": {
            "department": "Traffic Engineering Office",
            "contact": {"phone": "555-0105"},
            "stale": True,
        },
    },
}


@pytest.fixture(autouse=True)
def isolated_event_log(tmp_path, monkeypatch):
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    monkeypatch.setattr(core.logging, "LOG_DIR", log_dir)
    return log_dir


@pytest.fixture
def mapping_file(tmp_path) -> Path:
    path = tmp_path / "departments.json"
    path.write_text(json.dumps(MAPPING), encoding="utf-8")
    return path


@pytest.fixture
def directory(mapping_file) -> DepartmentDirectory:
    return DepartmentDirectory.from_file(mapping_file)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 10, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class ScriptedEndpoint:
    """응답 코드를 순서대로 돌려주는 가짜 지자체 엔드포인트 (마지막 값 반복)."""

    def __init__(self, *statuses: int):
        self.statuses = list(statuses) or [201]
        self.requests: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        idx = min(len(self.requests) - 1, len(self.statuses) - 1)
        status = self.statuses[idx]
        if status == 0:
            raise httpx.ConnectError("connection refused", request=request)
        if status < 400:
            return httpx.Response(status, json={"accepted": True})
        return httpx.Response(status, json={"error": "nope"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def endpoint() -> ScriptedEndpoint:
    return ScriptedEndpoint(201)


@pytest.fixture
def make_submitter():
    def _make(
        endpoint: ScriptedEndpoint,
        audit_log=None,
        notifier=None,
        monotonic: Optional[Callable[[], float]] = None,
    ):
        audit_log = audit_log if audit_log is not None else InMemoryAuditLog()
        notifier = notifier if notifier is not None else LoggingNotificationSink()
        sleep = RecordingSleep()
        breaker = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=300,
            clock=monotonic or FakeMonotonic(),
        )
        submitter = MunicipalSubmitter(
            client=MunicipalClient("http://municipal.test/api/reports", transport=endpoint.transport()),
            audit_log=audit_log,
            breaker=breaker,
            queue=RetryQueue(),
            notifier=notifier,
            max_attempts=3,
            backoff_base=1.0,
            backoff_max=30.0,
            sleep=sleep,
        )
        return submitter, sleep

    return _make


@pytest.fixture
def make_container(directory, make_submitter):
    def _make(endpoint: ScriptedEndpoint, monotonic: Optional[Callable[[], float]] = None) -> PipelineContainer:
        audit_log = InMemoryAuditLog()
        notifier = LoggingNotificationSink()
        submitter, _ = make_submitter(
            endpoint, audit_log=audit_log, notifier=notifier, monotonic=monotonic
        )
        return build_container(
            repository=InMemoryComplaintRepository(),
            audit_log=audit_log,
            notifier=notifier,
            directory=directory,
            submitter=submitter,
        )

    return _make


@pytest.fixture
def container(make_container, endpoint) -> PipelineContainer:
    return make_container(endpoint)


@pytest.fixture
def make_input():
    counter = {"n": 0}

    def _make(
        text: str,
        *,
        citizen_id: Optional[str] = "citizen-1",
        entities=(),
        keywords=(),
        location: Optional[GeoLocation] = None,
        complaint_id: Optional[str] = None,
        input_type: InputType = InputType.TEXT,
    ) -> ProcessedInput:
        counter["n"] += 1
        return ProcessedInput(
            id=complaint_id or f"c-{counter['n']}",
            text_content=text,
            input_type=input_type,
            metadata=InputMetadata(
                timestamp=datetime(2026, 10, 1, 8, 30),
                location=location,
                citizen_id=citizen_id,
            ),
            entities=tuple(Entity(tag=t, value=v) for t, v in entities),
            keywords=tuple(keywords),
        )

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def scripted():
    """ScriptedEndpoint 생성기: scripted(503, 503, 201)."""
    return ScriptedEndpoint
