# -*- coding: utf-8 -*-
"""
brain.utils_text

민원 텍스트 공통 유틸 모듈.

역할
----
- normalize_text(text): 비교/검색용 정규화 (소문자/공백/특수문자 정리)
- normalize(text): 파이프라인 전반에서 쓰는 thin wrapper
- contains_term(text, term) / contains_any(text, terms): 단어 경계 기준 포함 여부
- tokenize(text): 정규화 후 토큰 리스트
- extract_keywords(text): 상위 추출기가 키워드를 안 줬을 때 쓰는 간단 키워드 추출
- token_overlap(a, b): 토큰 집합 Jaccard 유사도 (중복 민원 판정용)
- split_sentences(text) / strip_fillers(text): 보고서 요약 문장 정리용

이 모듈은 다른 brain 모듈들에서만 공통으로 사용한다.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List


# ------------------------------------------------------------
# 1. 기본 정규화 함수들
# ------------------------------------------------------------

def normalize_text(text: str) -> str:
    """
    민원 텍스트를 비교/검색하기 쉽도록
    - 양 끝 공백 제거
    - 소문자 변환
    - 줄바꿈을 공백으로
    - 연속 공백을 하나로
    정도만 가볍게 정리한다.
    """
    if not text:
        return ""

    t = text.strip().lower()
    t = t.replace("\n", " ")
    # 불필요한 특수문자 제거 (숫자/영어/공백만 남김, 단어 안의 ' 와 - 는 공백 처리)
    t = re.sub(r"[^0-9a-z\s]", " ", t)
    t = re.sub(r"\s+", " ", t)
    return t.strip()


def normalize(text: str) -> str:
    """
    파이프라인 쪽에서 사용하는 일반 normalize.

    지금은 normalize_text 와 동일하게 동작시킨다.
    다국어 처리 등이 필요하면 여기만 확장하면 된다.
    """
    return normalize_text(text)


def contains_term(text: str, term: str) -> bool:
    """
    정규화된 text 안에 term 이 "단어 단위"로 들어 있으면 True.
    ('light' 가 'lighting' 에 걸리지 않도록 앞뒤 경계를 본다)
    """
    if not text or not term:
        return False
    return f" {term} " in f" {text} "


def contains_any(text: str, terms: Iterable[str]) -> bool:
    """
    text 안에 terms 중 하나라도 포함되어 있으면 True.
    이미 normalize 를 거쳤다는 가정하에 단어 경계 포함 체크만 한다.
    """
    if not text:
        return False

    return any(contains_term(text, t) for t in terms)


def tokenize(text: str) -> List[str]:
    norm = normalize_text(text)
    return norm.split() if norm else []


# ------------------------------------------------------------
# 2. 키워드 추출 유틸
# ------------------------------------------------------------

_STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "is", "are", "was", "were", "be",
        "been", "it", "its", "this", "that", "there", "here", "of", "in", "on",
        "at", "to", "for", "from", "with", "by", "my", "our", "we", "i", "me",
        "you", "your", "they", "them", "has", "have", "had", "not", "no", "so",
        "very", "please", "can", "could", "would", "should", "will", "just",
    }
)


def extract_keywords(text: str, max_keywords: int = 20) -> List[str]:
    """
    아주 단순한 방식으로 키워드 리스트를 만들어낸다.
    - normalize 후 공백 기준으로 split
    - 불용어/1글자 토큰은 버림
    - 인접한 두 토큰(bigram)도 같이 넣어 'street light' 같은 표현을 살림
    - 중복 제거, 등장 순서 유지
    """
    tokens = tokenize(text)
    if not tokens:
        return []

    seen = set()
    keywords: List[str] = []

    def _push(kw: str) -> None:
        if kw in seen:
            return
        seen.add(kw)
        keywords.append(kw)

    for i, tok in enumerate(tokens):
        if len(tok) > 1 and tok not in _STOPWORDS:
            _push(tok)
        if i + 1 < len(tokens):
            nxt = tokens[i + 1]
            if tok not in _STOPWORDS and nxt not in _STOPWORDS:
                _push(f"{tok} {nxt}")
        if len(keywords) >= max_keywords:
            break

    return keywords[:max_keywords]


# ------------------------------------------------------------
# 3. 유사도 유틸 (중복 민원 판정)
# ------------------------------------------------------------

def token_set(text: str) -> FrozenSet[str]:
    return frozenset(tokenize(text))


def token_overlap(a: Iterable[str], b: Iterable[str]) -> float:
    """
    두 토큰 집합의 Jaccard 유사도 (0.0 ~ 1.0).
    둘 다 비어 있으면 1.0 (같은 빈 문장으로 본다).
    """
    sa, sb = set(a), set(b)
    if not sa and not sb:
        return 1.0
    union = sa | sb
    return len(sa & sb) / len(union)


# ------------------------------------------------------------
# 4. 보고서 문장 정리 유틸
# ------------------------------------------------------------

_FILLER_PATTERN = re.compile(r"\b(um+|uh+|er+|hmm+|you know|like i said)\b[,]?\s*", re.IGNORECASE)


def strip_fillers(text: str) -> str:
    """음성 입력에서 흔한 군말(um, uh ...)만 걷어낸다. 내용은 건드리지 않음."""
    if not text:
        return ""
    t = _FILLER_PATTERN.sub("", text)
    return re.sub(r"\s+", " ", t).strip()


def split_sentences(text: str) -> List[str]:
    """마침표/물음표/느낌표/줄바꿈 기준으로 문장을 나눈다. 빈 문장은 버림."""
    if not text:
        return []
    parts = re.split(r"(?<=[.!?])\s+|\n+", text.strip())
    return [p.strip() for p in parts if p and p.strip()]
