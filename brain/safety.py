# -*- coding: utf-8 -*-
"""
brain.safety

민원 텍스트의 내용 안전성 / 민원 관련성 점수를 매기는 SafetyGate.

- 기준점 100 에서 시작해, 서로 독립적인 검사 함수들이 각각 감점한다.
  (욕설 -40, 혐오/차별 -40, 민원과 무관 -25, 정치/선거 -20, 광고/스팸 -25)
- 감점은 합산, 0 미만은 0 으로 자른다.
- 판정: 70 미만 REJECT / 70~85 FLAG(담당자 검토) / 85 초과 PASS
- 걸린 사유(reasons)는 판정과 무관하게 항상 돌려준다 (감사 로그용).

검사 함수는 SAFETY_CHECKS 리스트 순서대로 실행되며,
SafetyGate(checks=[...]) 로 추가/제거해서 따로 테스트할 수 있다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .models import SafetyDecision, SafetyVerdict
from .utils_text import contains_any, normalize

BASELINE_SCORE = 100
REJECT_BELOW = 70
FLAG_UP_TO = 85


@dataclass(frozen=True)
class SafetyCheck:
    name: str
    deduction: int
    detect: Callable[[str], Optional[str]]


# ------------------------------------------------------------
# 1. 어휘 목록
# ------------------------------------------------------------

PROFANITY_WORDS = [
    "damn", "damned", "hell", "crap", "shit", "bullshit", "fuck", "fucking",
    "bastard", "bitch", "asshole", "idiot", "idiots", "moron", "morons", "stupid",
]

TOXIC_WORDS = [
    "kill them", "go back to your country", "subhuman", "vermin",
    "those people", "filthy immigrants", "hate them", "should be shot",
    "deserve to die", "inferior race",
]

POLITICAL_WORDS = [
    "vote for", "election", "elections", "ballot", "campaign", "mayor must resign",
    "impeach", "party", "democrats", "republicans", "liberals", "conservatives",
    "political", "politician", "politicians",
]

SPAM_WORDS = [
    "buy now", "click here", "free money", "promo code", "discount code",
    "limited offer", "visit my website", "subscribe", "crypto", "casino",
]

# 민원으로 볼 수 있는 어휘. 하나도 없으면 "민원과 무관" 감점.
CIVIC_WORDS = [
    "road", "street", "avenue", "lane", "sidewalk", "pavement", "pothole",
    "potholes", "crack", "light", "lights", "lamp", "streetlight", "garbage",
    "trash", "waste", "rubbish", "bin", "bins", "litter", "dump", "sewage",
    "drain", "water", "pipe", "leak", "flooding", "flood", "tap", "traffic",
    "signal", "crossing", "crosswalk", "intersection", "speeding", "sign",
    "park", "bridge", "tree", "noise", "smell", "hydrant", "manhole",
    "neighborhood", "neighbourhood", "public", "city", "council", "bus",
    "stop", "school", "hospital", "broken", "damaged", "blocked", "repair",
    "fix", "dangerous", "hazard",
]


# ------------------------------------------------------------
# 2. 개별 검사 함수들 (사유 문자열 또는 None)
# ------------------------------------------------------------

def check_profanity(norm: str) -> Optional[str]:
    if contains_any(norm, PROFANITY_WORDS):
        return "Offensive language detected"
    return None


def check_toxicity(norm: str) -> Optional[str]:
    if contains_any(norm, TOXIC_WORDS):
        return "Toxic or discriminatory content detected"
    return None


def check_off_topic(norm: str) -> Optional[str]:
    if not contains_any(norm, CIVIC_WORDS):
        return "No civic issue could be identified"
    return None


def check_political(norm: str) -> Optional[str]:
    if contains_any(norm, POLITICAL_WORDS):
        return "Political or partisan content detected"
    return None


def check_spam(norm: str) -> Optional[str]:
    if contains_any(norm, SPAM_WORDS) or "http" in norm or "www" in norm.split():
        return "Advertising or spam content detected"
    return None


SAFETY_CHECKS: List[SafetyCheck] = [
    SafetyCheck("profanity", 40, check_profanity),
    SafetyCheck("toxicity", 40, check_toxicity),
    SafetyCheck("off_topic", 25, check_off_topic),
    SafetyCheck("political", 20, check_political),
    SafetyCheck("spam", 25, check_spam),
]


# ------------------------------------------------------------
# 3. 판정
# ------------------------------------------------------------

def decide(score: int) -> SafetyDecision:
    """점수 → PASS / FLAG / REJECT."""
    if score < REJECT_BELOW:
        return SafetyDecision.REJECT
    if score <= FLAG_UP_TO:
        return SafetyDecision.FLAG
    return SafetyDecision.PASS


class SafetyGate:
    def __init__(self, checks: Optional[Sequence[SafetyCheck]] = None):
        self.checks = list(SAFETY_CHECKS if checks is None else checks)

    def evaluate(self, processed_text: str) -> SafetyVerdict:
        norm = normalize(processed_text)

        score = BASELINE_SCORE
        reasons: List[str] = []
        for check in self.checks:
            reason = check.detect(norm)
            if reason:
                score -= check.deduction
                reasons.append(reason)

        score = max(0, score)
        return SafetyVerdict(score=score, reasons=tuple(reasons), decision=decide(score))
