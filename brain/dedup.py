# -*- coding: utf-8 -*-
"""
brain.dedup

최근에 들어온 민원과 거의 같은 민원인지 판정하는 DedupGate.

- fingerprint_for(complaint):
    정규화 텍스트 해시 + 토큰 집합 + 주민 ID + 대략적 위치(bucket)로 지문 생성
- DuplicateWindow:
    지문 저장소. 잠금(lock) 아래에서 "확인 + 기록"을 한 번에 처리해서
    동시에 들어온 두 중복 민원이 둘 다 통과하는 일을 막는다.
- DedupGate.check(fingerprint, window):
    같은 주민/같은 위치 bucket 의 만료되지 않은 지문 중
    유사도 >= 0.85 인 것이 있으면 중복, 없으면 now + window 만료로 기록.

SafetyGate 다음, 분류 전에 실행된다.
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .models import Complaint, DedupResult, GeoLocation
from .utils_text import normalize, token_overlap, token_set

DEFAULT_WINDOW = timedelta(hours=24)
DEFAULT_SIMILARITY_THRESHOLD = 0.85


@dataclass(frozen=True)
class Fingerprint:
    complaint_id: str
    digest: str
    tokens: FrozenSet[str]
    citizen_key: str
    location_bucket: str

    @property
    def scope(self) -> Tuple[str, str]:
        return (self.citizen_key, self.location_bucket)


@dataclass(frozen=True)
class DuplicateWindowEntry:
    fingerprint: Fingerprint
    expires_at: datetime

    @property
    def complaint_id(self) -> str:
        return self.fingerprint.complaint_id


def location_bucket(location: Optional[GeoLocation]) -> str:
    """위경도는 소수 둘째 자리(대략 1km)로, 없으면 주소 정규화 문자열로 묶는다."""
    if location is None:
        return ""
    if location.lat is not None and location.lon is not None:
        return f"{round(location.lat, 2):.2f},{round(location.lon, 2):.2f}"
    return normalize(location.address)


def fingerprint_for(complaint: Complaint) -> Fingerprint:
    norm = normalize(complaint.processed_text or complaint.original_text)
    return Fingerprint(
        complaint_id=complaint.id,
        digest=hashlib.sha256(norm.encode("utf-8")).hexdigest(),
        tokens=token_set(norm),
        citizen_key=(complaint.citizen_id or "").strip(),
        location_bucket=location_bucket(complaint.geolocation),
    )


def similarity(a: Fingerprint, b: Fingerprint) -> float:
    if a.digest == b.digest:
        return 1.0
    return token_overlap(a.tokens, b.tokens)


class DuplicateWindow:
    """
    지문 저장소 (프로세스 안에서 공유되는 유일한 가변 상태 중 하나).

    scope(주민 ID, 위치 bucket) 별로 엔트리를 모아 두고,
    check_and_insert 는 잠금 안에서 만료 정리 → 비교 → 기록까지 한 번에 한다.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.threshold = threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], List[DuplicateWindowEntry]] = {}

    def _purge(self, now: datetime) -> None:
        for scope in list(self._entries):
            alive = [e for e in self._entries[scope] if e.expires_at > now]
            if alive:
                self._entries[scope] = alive
            else:
                del self._entries[scope]

    def check_and_insert(self, fp: Fingerprint, window: timedelta) -> DedupResult:
        with self._lock:
            now = self._clock()
            self._purge(now)

            best: Optional[DuplicateWindowEntry] = None
            best_score = 0.0
            for entry in self._entries.get(fp.scope, []):
                # 재시작된 실행이 자기 자신을 중복으로 보지 않도록
                if entry.complaint_id == fp.complaint_id:
                    return DedupResult(is_duplicate=False)
                score = similarity(fp, entry.fingerprint)
                if score >= self.threshold and score > best_score:
                    best, best_score = entry, score

            if best is not None:
                return DedupResult(is_duplicate=True, original_id=best.complaint_id)

            self._entries.setdefault(fp.scope, []).append(
                DuplicateWindowEntry(fingerprint=fp, expires_at=now + window)
            )
            return DedupResult(is_duplicate=False)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._entries.values())


class DedupGate:
    def __init__(self, store: Optional[DuplicateWindow] = None, window: timedelta = DEFAULT_WINDOW):
        self.store = store if store is not None else DuplicateWindow()
        self.window = window

    def check(self, fingerprint: Fingerprint, window: Optional[timedelta] = None) -> DedupResult:
        return self.store.check_and_insert(fingerprint, window if window is not None else self.window)

    def check_complaint(self, complaint: Complaint) -> DedupResult:
        return self.check(fingerprint_for(complaint))
