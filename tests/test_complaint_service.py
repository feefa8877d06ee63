from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from brain.models import AuditRecord, ComplaintStatus, GeoLocation, ProblemType
from db.session import init_db, make_engine, make_session_factory
from services.complaint_service import SqlAuditLog, SqlComplaintRepository
from services.container import build_sql_container


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'civic_test.db'}")
    init_db(engine)
    return make_session_factory(engine)


def test_complaint_round_trips_through_table(session_factory, container, make_input):
    result = container.machine.process(
        make_input(
            "There is a deep pothole on Elm Street.",
            entities=[("location", "Elm Street")],
            keywords=["pothole"],
            location=GeoLocation(lat=40.71, lon=-74.0, address="12 Elm Street"),
        )
    )
    repo = SqlComplaintRepository(session_factory)

    repo.save(result.complaint)
    loaded = repo.get(result.complaint.id)

    assert loaded == result.complaint
    assert loaded.report.tracking_id == result.tracking_id
    assert loaded.problem_type == ProblemType.ROAD_DAMAGE


def test_save_upserts_and_lists_by_status(session_factory, container, make_input):
    repo = SqlComplaintRepository(session_factory)
    complaint = container.machine.process(make_input("Garbage bins overflowing on Pine Road.")).complaint
    repo.save(complaint)

    complaint.transition(ComplaintStatus.QUEUED)
    repo.save(complaint)

    assert [c.id for c in repo.list_by_status(ComplaintStatus.QUEUED)] == [complaint.id]
    assert repo.list_by_status(ComplaintStatus.REPORT_GENERATED) == []
    assert repo.get("missing") is None


def test_audit_log_appends_in_order(session_factory):
    log = SqlAuditLog(session_factory)
    for attempt, outcome in enumerate(["TRANSIENT_ERROR", "SUCCESS"], start=1):
        log.append(
            AuditRecord(
                complaint_id="c-1",
                attempt=attempt,
                outcome=outcome,
                timestamp=datetime(2026, 10, 1, 9, attempt),
                error="503" if outcome != "SUCCESS" else "",
            )
        )

    records = log.list_for("c-1")

    assert [(r.attempt, r.outcome, r.error) for r in records] == [
        (1, "TRANSIENT_ERROR", "503"),
        (2, "SUCCESS", ""),
    ]
    assert log.list_for("c-2") == []


def test_sql_container_runs_pipeline(session_factory, directory, endpoint, make_input):
    container = build_sql_container(
        session_factory, directory=directory, transport=endpoint.transport()
    )

    result = asyncio.run(container.machine.run(make_input("There is a deep pothole on Elm Street.")))

    stored = container.repository.get(result.complaint.id)
    assert stored.status == ComplaintStatus.SUBMITTED
    assert [r.outcome for r in container.audit_log.list_for(stored.id)] == ["SUCCESS"]
