# brain/summarizer.py
# -*- coding: utf-8 -*-
"""
brain.summarizer

분석이 끝난 민원을 담당 부서용 "공식 요약 + 주민 접수 확인 메시지"로
조립하는 ReportComposer 모듈입니다.

주요 기능:
- ReportComposer.compose(complaint, route):
    문제 유형 / 긴급도(+사유) / 민원 내용 / 위치 / 시간 / 핵심어 / 담당 부서를
    슬롯에 채워 5~8줄 요약(official_summary)을 만들고,
    주민용 접수 확인 메시지와 추적 번호(tracking id)를 붙여 StructuredReport 반환.

- build_fallback_summary(complaint, route):
    줄 수 제한이나 정보 보존 검사를 통과하지 못했을 때 쓰는
    처리된 원문만으로 만든 단순 5줄 요약.

규칙:
- 요약은 원문/엔티티/키워드에 있는 사실만 쓴다. (문장 정리, 순서 변경, 군말 제거만 허용)
- 새로운 장소/사실/주장을 덧붙이지 않는다. verify_preservation 으로 매번 확인.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, FrozenSet, Iterable, List, Optional, Set, Tuple

from core.logging import logger

from .errors import InternalPipelineError
from .models import Complaint, ProblemType, Route, StructuredReport, UrgencyLevel
from .utils_text import normalize, split_sentences, strip_fillers, tokenize

MIN_LINES = 5
MAX_LINES = 8
MAX_LINE_CHARS = 200
ISSUE_SENTENCES = 2

LOCATION_TAGS = frozenset({"location", "loc", "address", "place"})
TEMPORAL_TAGS = frozenset({"temporal", "time", "date", "datetime"})


def new_tracking_id() -> str:
    return "CIV-" + uuid.uuid4().hex[:12].upper()


# ---------------------------------------------------------
# 1) 문장 정리 유틸
# ---------------------------------------------------------

def _clip(text: str, limit: int = MAX_LINE_CHARS) -> str:
    """단어 중간에서 자르지 않도록 공백 기준으로 자른다."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut + " ..."


def _professionalize(sentence: str) -> str:
    s = strip_fillers(sentence)
    if s and s[0].islower():
        s = s[0].upper() + s[1:]
    return s


def _unique(values: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    out: List[str] = []
    for v in values:
        v = " ".join(v.split())
        key = normalize(v)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(v)
    return out


# ---------------------------------------------------------
# 2) 정보 보존 검사
# ---------------------------------------------------------

def source_tokens(complaint: Complaint) -> FrozenSet[str]:
    """요약에 쓸 수 있는 사실 토큰 전체: 처리된 원문 + 엔티티 값 + 키워드."""
    tokens: Set[str] = set(tokenize(complaint.processed_text))
    for e in complaint.entities:
        tokens.update(tokenize(e.value))
    for k in complaint.keywords:
        tokens.update(tokenize(k))
    return frozenset(tokens)


def verify_preservation(facts: Iterable[str], allowed: FrozenSet[str]) -> List[str]:
    """원문에 없는 토큰 목록을 돌려준다. 빈 목록이면 통과."""
    missing: List[str] = []
    for fact in facts:
        for tok in tokenize(fact):
            if tok not in allowed and tok not in missing:
                missing.append(tok)
    return missing


# ---------------------------------------------------------
# 3) 요약 슬롯 채우기
# ---------------------------------------------------------

def _type_line(complaint: Complaint) -> str:
    primary = complaint.problem_type or ProblemType.GENERAL_CIVIC
    line = f"Problem type: {primary.label}"
    if complaint.secondary_types:
        also = ", ".join(t.label for t in complaint.secondary_types)
        line += f" (also related: {also})"
    return line


def _urgency_line(complaint: Complaint) -> str:
    level = (complaint.urgency_level or UrgencyLevel.LOW).value
    if complaint.urgency_reasoning:
        return f"Urgency: {level} ({'; '.join(complaint.urgency_reasoning)})"
    return f"Urgency: {level}"


def _channel_line(complaint: Complaint) -> str:
    line = f"Intake channel: {complaint.input_type.value.lower()} submission"
    if complaint.needs_review:
        line += ", flagged for manual content review"
    return line


def build_summary_lines(complaint: Complaint, route: Route) -> Tuple[List[str], List[str]]:
    """
    (요약 줄 목록, 사실 값 목록)을 돌려준다.
    사실 값 목록은 정보 보존 검사 대상이다.
    """
    facts: List[str] = []
    sentences = [_professionalize(s) for s in split_sentences(complaint.processed_text)]
    sentences = [s for s in sentences if s]

    issue = _clip(" ".join(sentences[:ISSUE_SENTENCES]))
    facts.append(issue)

    lines = [_type_line(complaint), _urgency_line(complaint), f"Reported issue: {issue}"]

    locations = _unique(e.value for e in complaint.entities if e.tag.lower() in LOCATION_TAGS)
    if locations:
        value = _clip(", ".join(locations))
        facts.append(value)
        lines.append(f"Location: {value}")

    times = _unique(e.value for e in complaint.entities if e.tag.lower() in TEMPORAL_TAGS)
    if times:
        value = _clip(", ".join(times))
        facts.append(value)
        lines.append(f"Time reference: {value}")

    details = _unique(
        [e.value for e in complaint.entities if e.tag.lower() not in LOCATION_TAGS | TEMPORAL_TAGS]
        + list(complaint.keywords)
    )
    if details:
        value = _clip(", ".join(details[:8]))
        facts.append(value)
        lines.append(f"Key details: {value}")

    rest = sentences[ISSUE_SENTENCES:]
    if rest:
        value = _clip(" ".join(rest))
        facts.append(value)
        lines.append(f"Additional statement: {value}")

    lines.append(f"Suggested department: {route.department}")

    if len(lines) < MIN_LINES:
        lines.append(_channel_line(complaint))

    return lines, facts


def build_fallback_summary(complaint: Complaint, route: Route) -> Tuple[List[str], List[str]]:
    """단순 템플릿: 처리된 원문만 사실로 쓰는 고정 5줄."""
    statement = _clip(strip_fillers(complaint.processed_text), 300)
    primary = complaint.problem_type or ProblemType.GENERAL_CIVIC
    level = (complaint.urgency_level or UrgencyLevel.LOW).value
    lines = [
        f"Problem type: {primary.label}",
        f"Urgency: {level}",
        f"Citizen statement: {statement}",
        f"Suggested department: {route.department}",
        _channel_line(complaint),
    ]
    return lines, [statement]


def build_confirmation(complaint: Complaint, route: Route, tracking_id: str) -> str:
    primary = complaint.problem_type or ProblemType.GENERAL_CIVIC
    level = (complaint.urgency_level or UrgencyLevel.LOW).value
    return (
        "Thank you for your report. "
        f"It has been registered as '{primary.label}' with {level} urgency "
        f"and forwarded to {route.department}. "
        f"Your tracking ID is {tracking_id}."
    )


# ---------------------------------------------------------
# 4) ReportComposer
# ---------------------------------------------------------

class ReportComposer:
    def __init__(
        self,
        id_factory: Callable[[], str] = new_tracking_id,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._id_factory = id_factory
        self._clock = clock

    def _check(self, lines: List[str], facts: List[str], allowed: FrozenSet[str]) -> Optional[str]:
        if not MIN_LINES <= len(lines) <= MAX_LINES:
            return f"summary has {len(lines)} lines"
        if any("\n" in line for line in lines):
            return "summary line contains a line break"
        missing = verify_preservation(facts, allowed)
        if missing:
            return f"summary introduces tokens not in source: {missing[:5]}"
        return None

    def compose(self, complaint: Complaint, route: Route) -> StructuredReport:
        if complaint.problem_type is None or complaint.urgency_level is None:
            raise InternalPipelineError("compose", "complaint has not been analyzed")

        allowed = source_tokens(complaint)
        simplified = False

        lines, facts = build_summary_lines(complaint, route)
        problem = self._check(lines, facts, allowed)
        if problem:
            logger.warning(f"[compose] {complaint.id}: {problem}; retrying with simplified template")
            simplified = True
            lines, facts = build_fallback_summary(complaint, route)
            problem = self._check(lines, facts, allowed)
            if problem:
                raise InternalPipelineError("compose", problem)

        # 추적 번호는 민원당 한 번만 발급
        tracking_id = complaint.tracking_id or self._id_factory()

        return StructuredReport(
            complaint_id=complaint.id,
            problem_type=complaint.problem_type,
            secondary_types=tuple(complaint.secondary_types),
            urgency_level=complaint.urgency_level,
            urgency_reasoning=tuple(complaint.urgency_reasoning),
            official_summary="\n".join(lines),
            suggested_department=route.department,
            department_contact=route.contact,
            citizen_confirmation=build_confirmation(complaint, route, tracking_id),
            tracking_id=tracking_id,
            timestamp=self._clock(),
            needs_review=complaint.needs_review,
            simplified=simplified,
        )
