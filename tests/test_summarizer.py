from __future__ import annotations

import re
from datetime import datetime

import pytest

import brain.summarizer as summarizer
from brain.errors import InternalPipelineError
from brain.models import (
    Complaint,
    ContactInfo,
    Entity,
    InputType,
    ProblemType,
    Route,
    UrgencyLevel,
)
from brain.staff_report_agent import build_staff_report_text
from brain.summarizer import ReportComposer, source_tokens, verify_preservation
from brain.utils_text import tokenize

ROUTE = Route(
    department="Department of Public Works - Roads",
    contact=ContactInfo(phone="555-0101", email="roads@city.test"),
)


def _analyzed(text: str, entities=(), keywords=(), **kwargs) -> Complaint:
    defaults = dict(
        problem_type=ProblemType.ROAD_DAMAGE,
        urgency_level=UrgencyLevel.LOW,
        urgency_reasoning=["Road damage issues carry base priority 1"],
        classification_confidence=0.67,
    )
    defaults.update(kwargs)
    return Complaint(
        id="c-1",
        input_type=InputType.VOICE,
        original_text=text,
        processed_text=text,
        created_at=datetime(2026, 10, 1, 8, 0),
        entities=tuple(Entity(t, v) for t, v in entities),
        keywords=tuple(keywords),
        **defaults,
    )


@pytest.fixture
def rich_complaint() -> Complaint:
    return _analyzed(
        "Um, there is a deep pothole on Elm Street. Two cars got flat tires yesterday. "
        "Please fix it soon.",
        entities=[("location", "Elm Street"), ("temporal", "yesterday")],
        keywords=["pothole", "flat tires"],
    )


def test_full_summary_uses_all_slots(rich_complaint):
    report = ReportComposer().compose(rich_complaint, ROUTE)
    lines = report.official_summary.split("\n")

    assert len(lines) == 8
    assert lines[0] == "Problem type: Road damage"
    assert lines[1] == "Urgency: LOW (Road damage issues carry base priority 1)"
    assert lines[2] == "Reported issue: There is a deep pothole on Elm Street. Two cars got flat tires yesterday."
    assert "Location: Elm Street" in lines
    assert "Time reference: yesterday" in lines
    assert lines[-1] == "Suggested department: Department of Public Works - Roads"
    assert report.simplified is False


def test_short_input_is_padded_to_five_lines():
    report = ReportComposer().compose(_analyzed("Pothole."), ROUTE)
    lines = report.official_summary.split("\n")

    assert len(lines) == 5
    assert lines[-1] == "Intake channel: voice submission"


def test_summary_only_contains_source_facts(rich_complaint):
    report = ReportComposer().compose(rich_complaint, ROUTE)
    allowed = source_tokens(rich_complaint)

    body = [
        line.split(": ", 1)[1]
        for line in report.official_summary.split("\n")
        if line.split(": ", 1)[0] in {"Reported issue", "Location", "Time reference", "Key details", "Additional statement"}
    ]
    for value in body:
        assert all(tok in allowed for tok in tokenize(value)), value


def test_verify_preservation_reports_new_tokens():
    missing = verify_preservation(["near Main Street hospital"], frozenset({"near", "street"}))

    assert missing == ["main", "hospital"]


def test_fabricated_fact_triggers_simplified_template(rich_complaint, monkeypatch):
    def fabricating(complaint, route):
        lines = ["a", "b", "c", "d", "Location: Main Street hospital"]
        return lines, ["Main Street hospital"]

    monkeypatch.setattr(summarizer, "build_summary_lines", fabricating)

    report = ReportComposer().compose(rich_complaint, ROUTE)
    lines = report.official_summary.split("\n")

    assert report.simplified is True
    assert len(lines) == 5
    assert lines[2].startswith("Citizen statement: there is a deep pothole on Elm Street.")


def test_too_many_lines_falls_back(rich_complaint, monkeypatch):
    monkeypatch.setattr(summarizer, "MAX_LINES", 6)

    report = ReportComposer().compose(rich_complaint, ROUTE)

    assert report.simplified is True
    assert len(report.official_summary.split("\n")) == 5


def test_both_templates_failing_raises(rich_complaint, monkeypatch):
    monkeypatch.setattr(summarizer, "MAX_LINES", 4)

    with pytest.raises(InternalPipelineError):
        ReportComposer().compose(rich_complaint, ROUTE)


def test_unanalyzed_complaint_is_rejected(rich_complaint):
    rich_complaint.urgency_level = None

    with pytest.raises(InternalPipelineError):
        ReportComposer().compose(rich_complaint, ROUTE)


def test_tracking_id_is_minted_once(rich_complaint):
    composer = ReportComposer()
    first = composer.compose(rich_complaint, ROUTE)

    assert re.fullmatch(r"CIV-[0-9A-F]{12}", first.tracking_id)

    rich_complaint.tracking_id = first.tracking_id
    second = composer.compose(rich_complaint, ROUTE)

    assert second.tracking_id == first.tracking_id


def test_confirmation_mentions_type_urgency_department_and_tracking_id(rich_complaint):
    report = ReportComposer(id_factory=lambda: "CIV-000000000001").compose(rich_complaint, ROUTE)

    assert report.citizen_confirmation == (
        "Thank you for your report. It has been registered as 'Road damage' with LOW urgency "
        "and forwarded to Department of Public Works - Roads. Your tracking ID is CIV-000000000001."
    )


def test_staff_report_text_sections(rich_complaint):
    report = ReportComposer(
        id_factory=lambda: "CIV-ABCDEF123456",
        clock=lambda: datetime(2026, 10, 1, 9, 15),
    ).compose(rich_complaint, ROUTE)

    text = build_staff_report_text(report)

    assert text.startswith("CIVIC COMPLAINT REPORT\nTracking ID: CIV-ABCDEF123456")
    assert "Issued: 2026-10-01 09:15 UTC" in text
    assert "  b. Contact : 555-0101 / roads@city.test" in text
    assert "  - Manual content review required : no" in text
