from __future__ import annotations

import json
import tempfile

import pytest
from fastapi.testclient import TestClient

from app_fastapi import create_app


@pytest.fixture
def client(container):
    return TestClient(create_app(container))


def _payload(text: str, **extra) -> dict:
    body = {
        "text_content": text,
        "input_type": "TEXT",
        "metadata": {"citizen_id": "citizen-7", "location": {"address": "12 Elm Street"}},
        "entities": [{"tag": "location", "value": "Elm Street"}],
        "keywords": ["pothole"],
    }
    body.update(extra)
    return body


def test_health(client):
    res = client.get("/")

    assert res.status_code == 200
    assert "message" in res.json()


def test_create_returns_confirmation_and_delivers_in_background(client, endpoint):
    res = client.post("/api/complaints", json=_payload("Deep pothole on Elm Street.", id="api-1"))

    assert res.status_code == 200
    body = res.json()
    assert body["complaint_id"] == "api-1"
    assert body["status"] == "REPORT_GENERATED"
    assert body["problem_type"] == "ROAD_DAMAGE"
    assert body["department"] == "Department of Public Works - Roads"
    assert body["tracking_id"] in body["message"]

    # TestClient 는 응답 후 백그라운드 작업까지 끝낸다
    detail = client.get("/api/complaints/api-1").json()
    assert detail["status"] == "SUBMITTED"
    assert len(endpoint.requests) == 1

    audit = client.get("/api/complaints/api-1/audit").json()
    assert [a["outcome"] for a in audit] == ["SUCCESS"]


def test_filtered_complaint_is_not_delivered(client, endpoint):
    res = client.post("/api/complaints", json=_payload("Damn idiots, vote for my party."))

    body = res.json()
    assert body["status"] == "FILTERED"
    assert body["tracking_id"] is None
    assert endpoint.requests == []


def test_duplicate_id_conflicts(client):
    client.post("/api/complaints", json=_payload("Deep pothole on Elm Street.", id="dup-1"))

    res = client.post("/api/complaints", json=_payload("Another pothole.", id="dup-1"))

    assert res.status_code == 409


def test_unknown_complaint_is_404(client):
    assert client.get("/api/complaints/nope").status_code == 404
    assert client.get("/api/complaints/nope/audit").status_code == 404
    assert client.get("/api/complaints/nope/report").status_code == 404


def test_report_text_and_pdf(client):
    client.post("/api/complaints", json=_payload("Deep pothole on Elm Street.", id="rep-1"))

    text = client.get("/api/complaints/rep-1/report")
    assert text.status_code == 200
    assert text.text.startswith("CIVIC COMPLAINT REPORT")

    pdf = client.get("/api/complaints/rep-1/report.pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    assert "CIV-" in pdf.headers["content-disposition"]


def test_report_pdf_is_rendered_in_memory(client, monkeypatch):
    def no_temp_files(*args, **kwargs):
        raise AssertionError("PDF export must not touch the filesystem")

    monkeypatch.setattr(tempfile, "NamedTemporaryFile", no_temp_files)
    monkeypatch.setattr(tempfile, "mkstemp", no_temp_files)
    client.post("/api/complaints", json=_payload("Deep pothole on Elm Street.", id="rep-2"))

    pdf = client.get("/api/complaints/rep-2/report.pdf")

    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")


def test_departments_and_reload(client, mapping_file):
    current = client.get("/admin/departments").json()
    assert current["version"] == "test-1"
    assert current["general"]["department"] == "Citizen Service Center"

    data = json.loads(mapping_file.read_text(encoding="utf-8"))
    data["version"] = "test-2"
    mapping_file.write_text(json.dumps(data), encoding="utf-8")
    assert client.post("/admin/departments/reload").json() == {"status": "ok", "version": "test-2"}

    mapping_file.write_text("{not json", encoding="utf-8")
    assert client.post("/admin/departments/reload").status_code == 422
    assert client.get("/admin/departments").json()["version"] == "test-2"


def test_integration_status_and_drain(make_container, scripted, monotonic):
    container = make_container(scripted(503, 503, 503, 201), monotonic=monotonic)
    client = TestClient(create_app(container))

    client.post("/api/complaints", json=_payload("Deep pothole on Elm Street.", id="q-1"))

    status = client.get("/admin/integration/status").json()
    assert status["breaker_state"] == "OPEN"
    assert status["queued"] == 1
    assert client.get("/api/complaints/q-1").json()["status"] == "QUEUED"

    monotonic.now += 300
    drained = client.post("/admin/retry-queue/drain").json()

    assert drained["submitted"] == ["q-1"]
    assert client.get("/admin/integration/status").json()["breaker_state"] == "CLOSED"
    assert client.get("/api/complaints/q-1").json()["status"] == "SUBMITTED"
