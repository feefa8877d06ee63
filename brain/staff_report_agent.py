# brain/staff_report_agent.py
# -*- coding: utf-8 -*-
"""
담당 부서용 민원 보고서(텍스트 버전)를 만드는 레이어.

- 입력: StructuredReport (ReportComposer.compose 결과)
- 출력: 공문 스타일의 보고서 텍스트 (문단/섹션 단위)
"""

from .models import StructuredReport


def build_staff_report_text(report: StructuredReport) -> str:
    """
    간단한 템플릿 기반 공문 스타일 보고서 텍스트 생성.
    (LLM 안 쓰고 템플릿만으로 구성)
    """
    title = "CIVIC COMPLAINT REPORT"

    reasoning = report.urgency_reasoning or ("No additional urgency factors",)
    secondary = ", ".join(t.label for t in report.secondary_types) or "-"
    contact = " / ".join(
        v for v in (report.department_contact.phone, report.department_contact.email) if v
    ) or "-"

    lines = [
        f"{title}",
        f"Tracking ID: {report.tracking_id}",
        f"Issued: {report.timestamp.strftime('%Y-%m-%d %H:%M UTC')}",
        "",
        "1. Classification",
        f"  a. Problem type : {report.problem_type.label}",
        f"  b. Related types : {secondary}",
        "",
        "2. Urgency",
        f"  a. Level : {report.urgency_level.value}",
    ]
    lines.extend(f"  - {r}" for r in reasoning)
    lines.extend(
        [
            "",
            "3. Summary",
        ]
    )
    lines.extend(f"  {line}" for line in report.official_summary.splitlines())
    lines.extend(
        [
            "",
            "4. Responsible department",
            f"  a. Department : {report.suggested_department}",
            f"  b. Contact : {contact}",
            "",
            "5. Notes",
            f"  - Manual content review required : {'yes' if report.needs_review else 'no'}",
        ]
    )
    if report.simplified:
        lines.append("  - Summary produced with the simplified template")

    return "\n".join(lines)
