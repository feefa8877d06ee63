# core/report_pdf.py
# -*- coding: utf-8 -*-
"""
담당자용 보고서 PDF 출력.

build_staff_report_text 가 만든 본문을 그대로 A4 에 옮긴다.
파일 경로 또는 BytesIO 같은 쓰기 가능한 객체 어디로든 저장할 수 있다.
"""

from io import BytesIO
from typing import BinaryIO, List, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from brain.models import StructuredReport
from brain.staff_report_agent import build_staff_report_text

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_X = 20 * mm
LINE_HEIGHT = 6 * mm
BODY_FONT = ("Helvetica", 10)
# Helvetica 10pt 기준 A4 본문 폭에 들어가는 대략적인 글자 수
WRAP_CHARS = 95


def _wrap(line: str, width: int = WRAP_CHARS) -> List[str]:
    if len(line) <= width:
        return [line]
    out: List[str] = []
    current = ""
    for word in line.split(" "):
        if current and len(current) + 1 + len(word) > width:
            out.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        out.append(current)
    return out


def build_staff_report_pdf(
    report: StructuredReport,
    target: Union[str, BinaryIO],
) -> Union[str, BinaryIO]:
    """
    보고서를 PDF 로 그려 target(경로 또는 바이너리 스트림)에 저장하고 target 을 돌려준다.
    첫 줄(보고서 제목)은 굵은 머리글로, 나머지는 줄바꿈해서 본문으로 그린다.
    """
    lines = build_staff_report_text(report).split("\n")
    title, body = lines[0], lines[1:]

    c = canvas.Canvas(target, pagesize=A4)
    c.setTitle(f"{title} {report.tracking_id}")

    c.setFont("Helvetica-Bold", 15)
    c.drawCentredString(PAGE_WIDTH / 2.0, PAGE_HEIGHT - 25 * mm, title)
    c.setFont("Helvetica", 9)
    c.drawRightString(PAGE_WIDTH - MARGIN_X, PAGE_HEIGHT - 31 * mm, report.tracking_id)

    c.setFont(*BODY_FONT)
    y = PAGE_HEIGHT - 42 * mm
    for raw in body:
        for line in _wrap(raw):
            if y < 20 * mm:
                c.showPage()
                c.setFont(*BODY_FONT)
                y = PAGE_HEIGHT - 25 * mm
            c.drawString(MARGIN_X, y, line)
            y -= LINE_HEIGHT

    c.showPage()
    c.save()
    return target


def render_staff_report_pdf(report: StructuredReport) -> bytes:
    """디스크를 거치지 않고 PDF 바이트를 만든다 (HTTP 응답용)."""
    buf = BytesIO()
    build_staff_report_pdf(report, buf)
    return buf.getvalue()
