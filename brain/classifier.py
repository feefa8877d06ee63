# brain/classifier.py
# -*- coding: utf-8 -*-
"""
민원 문제 유형(ProblemType) 분류 모듈.

역할
----
- classify(entities, keywords):
    상위 추출기가 준 엔티티/키워드를 카테고리별 "서명(signature)" 어휘와 맞춰 보고
    primary 1개 + secondary 여러 개 + confidence 를 결정.
- 아무 카테고리도 최소 신뢰도를 못 넘으면 GENERAL_CIVIC 으로 떨어지되,
  confidence 는 실제로 나온 낮은 점수를 그대로 기록한다 (1.0 으로 포장하지 않음).

주의
----
- 여기서는 '문제 유형'만 정한다. 긴급도(urgency)는 urgency 모듈,
  담당 부서는 routing 모듈에서 결정한다.
- 같은 입력이면 항상 같은 결과 (랜덤/숨은 상태 없음).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from .models import Classification, Entity, ProblemType
from .utils_text import contains_term, normalize

STRONG = 2.0
NORMAL = 1.0
WEAK = 0.5

# 가중치 합이 이 값이면 confidence 1.0
FULL_CONFIDENCE_WEIGHT = 3.0
MIN_CONFIDENCE = 0.3
SECONDARY_THRESHOLD = 0.3

# 동점일 때 우선순위 (앞이 우선)
CATEGORY_ORDER: Tuple[ProblemType, ...] = (
    ProblemType.TRAFFIC_SAFETY,
    ProblemType.WATER_SUPPLY,
    ProblemType.ROAD_DAMAGE,
    ProblemType.STREET_LIGHTS,
    ProblemType.GARBAGE_SANITATION,
)

# ------------------------------------------------------------
# 1. 카테고리별 서명 어휘 (term -> weight)
# ------------------------------------------------------------

SIGNATURES: Dict[ProblemType, Dict[str, float]] = {
    ProblemType.GARBAGE_SANITATION: {
        "garbage": STRONG,
        "trash": STRONG,
        "rubbish": STRONG,
        "litter": STRONG,
        "illegal dumping": STRONG,
        "sewage": STRONG,
        "waste": NORMAL,
        "bin": NORMAL,
        "bins": NORMAL,
        "dumpster": NORMAL,
        "overflowing": NORMAL,
        "rats": NORMAL,
        "smell": WEAK,
        "stink": WEAK,
        "dirty": WEAK,
    },
    ProblemType.ROAD_DAMAGE: {
        "pothole": STRONG,
        "potholes": STRONG,
        "sinkhole": STRONG,
        "road damage": STRONG,
        "cracked road": STRONG,
        "asphalt": NORMAL,
        "pavement": NORMAL,
        "sidewalk": NORMAL,
        "crack": NORMAL,
        "cracks": NORMAL,
        "faded paint": NORMAL,
        "road markings": NORMAL,
        "uneven": WEAK,
        "road": WEAK,
        "bump": WEAK,
    },
    ProblemType.STREET_LIGHTS: {
        "street light": STRONG,
        "street lights": STRONG,
        "streetlight": STRONG,
        "streetlights": STRONG,
        "street lamp": STRONG,
        "lamp post": STRONG,
        "light out": NORMAL,
        "flickering": NORMAL,
        "lamp": NORMAL,
        "dark street": NORMAL,
        "bulb": WEAK,
        "dark": WEAK,
        "light": WEAK,
    },
    ProblemType.WATER_SUPPLY: {
        "water leak": STRONG,
        "burst pipe": STRONG,
        "pipe burst": STRONG,
        "no water": STRONG,
        "water supply": STRONG,
        "flooding": NORMAL,
        "flooded": NORMAL,
        "flood": NORMAL,
        "leak": NORMAL,
        "leaking": NORMAL,
        "pipe": NORMAL,
        "hydrant": NORMAL,
        "water pressure": NORMAL,
        "drain": WEAK,
        "water": WEAK,
    },
    ProblemType.TRAFFIC_SAFETY: {
        "traffic light": STRONG,
        "traffic lights": STRONG,
        "traffic signal": STRONG,
        "crosswalk": STRONG,
        "pedestrian crossing": STRONG,
        "speeding": STRONG,
        "stop sign": STRONG,
        "accident": NORMAL,
        "intersection": NORMAL,
        "speed bump": NORMAL,
        "road sign": NORMAL,
        "signal": NORMAL,
        "cars": WEAK,
        "traffic": WEAK,
    },
}


# ------------------------------------------------------------
# 2. 점수 계산
# ------------------------------------------------------------

def _bag(entities: Iterable[Entity], keywords: Iterable[str]) -> List[str]:
    """엔티티 값 + 키워드를 정규화한 문자열 목록 (입력 순서 유지)."""
    items: List[str] = []
    for e in entities:
        norm = normalize(e.value)
        if norm:
            items.append(norm)
    for k in keywords:
        norm = normalize(k)
        if norm:
            items.append(norm)
    return items


def score_categories(entities: Iterable[Entity], keywords: Iterable[str]) -> Dict[ProblemType, float]:
    """카테고리별 confidence (0~1). 어휘 하나는 카테고리당 한 번만 센다."""
    bag = _bag(entities, keywords)
    scores: Dict[ProblemType, float] = {}
    for category in CATEGORY_ORDER:
        weight = 0.0
        for term, w in SIGNATURES[category].items():
            if any(contains_term(item, term) for item in bag):
                weight += w
        scores[category] = min(1.0, weight / FULL_CONFIDENCE_WEIGHT)
    return scores


def _rank(scores: Dict[ProblemType, float]) -> List[ProblemType]:
    return sorted(
        CATEGORY_ORDER,
        key=lambda c: (-scores.get(c, 0.0), CATEGORY_ORDER.index(c)),
    )


# ------------------------------------------------------------
# 3. 메인 분류 함수
# ------------------------------------------------------------

class ClassificationEngine:
    def __init__(
        self,
        min_confidence: float = MIN_CONFIDENCE,
        secondary_threshold: float = SECONDARY_THRESHOLD,
    ):
        self.min_confidence = min_confidence
        self.secondary_threshold = secondary_threshold

    def classify(self, entities: Sequence[Entity], keywords: Sequence[str]) -> Classification:
        scores = score_categories(entities, keywords)
        ranked = _rank(scores)
        best = ranked[0]
        best_conf = round(scores[best], 4)

        if best_conf < self.min_confidence:
            # 신뢰도 부족 → GENERAL_CIVIC (점수는 그대로 남김)
            return Classification(
                primary=ProblemType.GENERAL_CIVIC,
                secondary=(),
                confidence=best_conf,
                low_confidence=True,
            )

        secondary = tuple(
            c for c in ranked[1:] if scores[c] >= self.secondary_threshold
        )
        return Classification(primary=best, secondary=secondary, confidence=best_conf)


def classify(entities: Sequence[Entity], keywords: Sequence[str]) -> Classification:
    return ClassificationEngine().classify(entities, keywords)
