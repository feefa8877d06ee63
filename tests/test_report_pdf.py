from __future__ import annotations

from datetime import datetime

from brain.models import ContactInfo, ProblemType, StructuredReport, UrgencyLevel
from core.report_pdf import _wrap, build_staff_report_pdf, render_staff_report_pdf


def _report() -> StructuredReport:
    return StructuredReport(
        complaint_id="c-1",
        problem_type=ProblemType.ROAD_DAMAGE,
        secondary_types=(),
        urgency_level=UrgencyLevel.HIGH,
        urgency_reasoning=("Safety-critical language detected",),
        official_summary="\n".join(f"Line {i} of the summary" for i in range(1, 6)),
        suggested_department="Department of Public Works - Roads",
        department_contact=ContactInfo(phone="555-0101"),
        citizen_confirmation="Thanks",
        tracking_id="CIV-0123456789AB",
        timestamp=datetime(2026, 10, 1, 9, 0),
    )


def test_render_returns_pdf_bytes():
    data = render_staff_report_pdf(_report())

    assert data.startswith(b"%PDF")
    assert data.rstrip().endswith(b"%%EOF")


def test_build_writes_to_path(tmp_path):
    path = str(tmp_path / "report.pdf")

    assert build_staff_report_pdf(_report(), path) == path
    with open(path, "rb") as f:
        assert f.read(4) == b"%PDF"


def test_long_lines_are_wrapped_on_words():
    line = " ".join(["pothole"] * 30)

    wrapped = _wrap(line, width=40)

    assert all(len(part) <= 40 for part in wrapped)
    assert " ".join(wrapped) == line
    assert _wrap("short line") == ["short line"]
