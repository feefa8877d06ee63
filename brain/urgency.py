# brain/urgency.py
# -*- coding: utf-8 -*-
"""
민원 긴급도(UrgencyLevel) 판정 모듈.

점수는 0 에서 시작하는 정수 덧셈:
  - 안전 위험 어휘(dangerous, hazard, emergency, broken, flooding ...)  +3
  - 문제 유형별 기본 점수 (TRAFFIC_SAFETY 2, WATER_SUPPLY 2,
    STREET_LIGHTS 1, ROAD_DAMAGE 1, GARBAGE_SANITATION 1, GENERAL_CIVIC 0)
  - 파급력이 큰 위치(간선도로, 학교, 병원 주변)                        +1

  >= 4 HIGH, 2~3 MEDIUM, < 2 LOW

안전 위험 어휘 + (TRAFFIC_SAFETY | WATER_SUPPLY) 는 점수와 상관없이 HIGH 로 고정한다.
reasoning 은 점수가 0 보다 크면 항상 1개 이상, 0 이면 빈 목록.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .models import Entity, ProblemType, UrgencyAssessment, UrgencyLevel
from .utils_text import contains_any, contains_term, normalize

SAFETY_CRITICAL_POINTS = 3
HIGH_IMPACT_LOCATION_POINTS = 1

HIGH_THRESHOLD = 4
MEDIUM_THRESHOLD = 2

REASON_SAFETY = "Safety-critical language detected"
REASON_LOCATION = "High-impact location identified"
REASON_OVERRIDE = "Safety-critical issue on a critical service escalated to HIGH"

SAFETY_CRITICAL_WORDS = [
    "dangerous", "danger", "hazard", "hazardous", "emergency", "broken",
    "flooding", "flooded", "collapsed", "collapse", "sparking", "exposed wire",
    "exposed wires", "live wire", "gas leak", "fire", "injured", "injury",
    "unsafe", "sinkhole", "burst", "urgent",
]

# 문제 유형별 기본 점수. 표에 없는 유형은 DEFAULT_BASE_SCORE.
BASE_SCORES: Dict[ProblemType, int] = {
    ProblemType.TRAFFIC_SAFETY: 2,
    ProblemType.WATER_SUPPLY: 2,
    ProblemType.STREET_LIGHTS: 1,
    ProblemType.ROAD_DAMAGE: 1,
    ProblemType.GARBAGE_SANITATION: 1,
    ProblemType.GENERAL_CIVIC: 0,
}
DEFAULT_BASE_SCORE = 0

OVERRIDE_TYPES = frozenset({ProblemType.TRAFFIC_SAFETY, ProblemType.WATER_SUPPLY})

# 위치 표현 → 파급력 큰 위치 분류
HIGH_IMPACT_LOCATIONS: Dict[str, List[str]] = {
    "arterial_road": [
        "main street", "main road", "highway", "motorway", "freeway",
        "expressway", "boulevard", "avenue", "arterial", "ring road",
    ],
    "school_zone": [
        "school", "kindergarten", "nursery", "playground", "university", "college",
    ],
    "hospital_zone": [
        "hospital", "clinic", "emergency room", "medical center", "ambulance station",
    ],
}

LOCATION_TAGS = frozenset({"location", "loc", "address", "place"})


def base_score(problem_type: ProblemType) -> int:
    return BASE_SCORES.get(problem_type, DEFAULT_BASE_SCORE)


def resolve_location_class(value: str) -> Optional[str]:
    """위치 문자열 하나가 파급력 큰 위치 분류에 해당하면 그 이름, 아니면 None."""
    norm = normalize(value)
    if not norm:
        return None
    for cls, terms in HIGH_IMPACT_LOCATIONS.items():
        if contains_any(norm, terms):
            return cls
    return None


def has_safety_critical(entities: Iterable[Entity], keywords: Iterable[str]) -> bool:
    values = [normalize(e.value) for e in entities] + [normalize(k) for k in keywords]
    return any(
        contains_term(v, term) for v in values if v for term in SAFETY_CRITICAL_WORDS
    )


def find_high_impact_location(entities: Iterable[Entity], keywords: Iterable[str]) -> Optional[str]:
    """
    location 태그 엔티티를 먼저 보고,
    상위 추출기가 위치 태그를 안 붙인 경우를 위해 키워드도 확인한다.
    """
    for e in entities:
        if e.tag.lower() in LOCATION_TAGS:
            cls = resolve_location_class(e.value)
            if cls:
                return cls
    for k in keywords:
        cls = resolve_location_class(k)
        if cls:
            return cls
    return None


def level_for(score: int) -> UrgencyLevel:
    if score >= HIGH_THRESHOLD:
        return UrgencyLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW


class UrgencyAssessor:
    def assess(
        self,
        entities: Sequence[Entity],
        problem_type: ProblemType,
        keywords: Sequence[str],
    ) -> UrgencyAssessment:
        score = 0
        reasoning: List[str] = []

        safety_critical = has_safety_critical(entities, keywords)
        if safety_critical:
            score += SAFETY_CRITICAL_POINTS
            reasoning.append(REASON_SAFETY)

        base = base_score(problem_type)
        if base:
            score += base
            reasoning.append(f"{problem_type.label} issues carry base priority {base}")

        if find_high_impact_location(entities, keywords):
            score += HIGH_IMPACT_LOCATION_POINTS
            reasoning.append(REASON_LOCATION)

        level = level_for(score)

        # 안전 위험 + 교통/상수도 → 무조건 HIGH (임계값 효과에 기대지 않는 명시 규칙)
        if safety_critical and problem_type in OVERRIDE_TYPES and level != UrgencyLevel.HIGH:
            level = UrgencyLevel.HIGH
            reasoning.append(REASON_OVERRIDE)

        return UrgencyAssessment(level=level, reasoning=tuple(reasoning), score=score)


def assess(
    entities: Sequence[Entity],
    problem_type: ProblemType,
    keywords: Sequence[str],
) -> UrgencyAssessment:
    return UrgencyAssessor().assess(entities, problem_type, keywords)
