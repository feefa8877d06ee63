# brain/submitter.py
# -*- coding: utf-8 -*-
"""
완성된 보고서를 지자체 민원 시스템으로 넘기는 MunicipalSubmitter.

구성
----
- MunicipalClient : httpx.AsyncClient 로 보고서 JSON 을 POST.
    타임아웃/네트워크 오류/기타 httpx 오류/5xx/408·425·429 → IntegrationTransient
    그 밖의 4xx(인증, 형식 오류)     → IntegrationPermanent
- CircuitBreaker  : 연속 일시 오류가 임계치를 넘으면 OPEN, cooldown 동안은 시도 없이 바로 QUEUED.
    cooldown 이 지나면 HALF_OPEN 에서 시험 호출 1번 → 성공 CLOSED / 실패 다시 OPEN.
- RetryQueue      : 재시도를 다 써 버린 민원 ID 보관 (백그라운드 재전송 드라이버가 비움)
- MunicipalSubmitter.submit(report):
    시도할 때마다 AuditRecord 1건 추가,
    일시 오류는 지수 백오프(asyncio.sleep)로 재시도 → 소진 시 QUEUED,
    영구 오류는 FAILED + 관리자 알림 (무한 재시도 안 함).

백오프 대기는 asyncio.sleep 이라 다른 민원 처리는 막지 않는다.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

import httpx

from core.logging import log_event, logger

from .errors import IntegrationPermanent, IntegrationTransient
from .models import AuditRecord, StructuredReport, SubmissionOutcome
from .stores import AuditLog, NotificationSink

TRANSIENT_STATUS = frozenset({408, 425, 429})

AUDIT_SUCCESS = "SUCCESS"
AUDIT_TRANSIENT = "TRANSIENT_ERROR"
AUDIT_PERMANENT = "PERMANENT_ERROR"


# ---------------------------------------------------------
# 1) HTTP 클라이언트
# ---------------------------------------------------------

class MunicipalClient:
    def __init__(
        self,
        url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                res = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise IntegrationTransient(f"municipal endpoint timed out: {e}") from e
        except httpx.TransportError as e:
            raise IntegrationTransient(f"municipal endpoint unreachable: {e}") from e
        except httpx.HTTPError as e:
            # 디코딩 오류, 리다이렉트 초과 등
            raise IntegrationTransient(f"municipal call failed: {type(e).__name__}: {e}") from e

        if res.status_code >= 500 or res.status_code in TRANSIENT_STATUS:
            raise IntegrationTransient(
                f"municipal endpoint returned {res.status_code}", status_code=res.status_code
            )
        if res.status_code >= 400:
            raise IntegrationPermanent(
                f"municipal endpoint rejected report: {res.status_code} {res.text[:200]}",
                status_code=res.status_code,
            )

        try:
            data = res.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"response": data}


# ---------------------------------------------------------
# 2) 서킷 브레이커
# ---------------------------------------------------------

class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """상태 변경은 모두 잠금 안에서 일어난다 (동시 전송 시도 간 원자성)."""

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return self._state

    def allow_request(self) -> bool:
        with self._lock:
            if self._state == BreakerState.CLOSED:
                return True
            if self._state == BreakerState.OPEN:
                if self._clock() - (self._opened_at or 0.0) < self.cooldown_seconds:
                    return False
                self._state = BreakerState.HALF_OPEN
                self._trial_in_flight = False
            # HALF_OPEN: 시험 호출은 한 번에 하나만
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._state = BreakerState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._trial_in_flight = False
            if self._state == BreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
                if self._state != BreakerState.OPEN:
                    logger.warning(
                        f"[breaker] opening circuit after {self._failures} consecutive failures "
                        f"(cooldown {self.cooldown_seconds:.0f}s)"
                    )
                self._state = BreakerState.OPEN
                self._opened_at = self._clock()

    def release_trial(self) -> None:
        """결과 없이 끝난 시험 호출(취소 등)의 슬롯을 돌려준다."""
        with self._lock:
            self._trial_in_flight = False

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            remaining = 0.0
            if self._state == BreakerState.OPEN and self._opened_at is not None:
                remaining = max(0.0, self.cooldown_seconds - (self._clock() - self._opened_at))
            return {
                "state": self._state.value,
                "consecutive_failures": self._failures,
                "cooldown_remaining_seconds": round(remaining, 1),
            }


# ---------------------------------------------------------
# 3) 재전송 대기열
# ---------------------------------------------------------

class RetryQueue:
    def __init__(self):
        self._lock = threading.Lock()
        self._items: Deque[str] = deque()

    def push(self, complaint_id: str) -> None:
        with self._lock:
            if complaint_id not in self._items:
                self._items.append(complaint_id)

    def pop_all(self) -> List[str]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
            return items

    def __contains__(self, complaint_id: object) -> bool:
        with self._lock:
            return complaint_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# ---------------------------------------------------------
# 4) MunicipalSubmitter
# ---------------------------------------------------------

class MunicipalSubmitter:
    def __init__(
        self,
        client: MunicipalClient,
        audit_log: AuditLog,
        breaker: CircuitBreaker,
        queue: RetryQueue,
        notifier: NotificationSink,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        call_timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.client = client
        self.audit_log = audit_log
        self.breaker = breaker
        self.queue = queue
        self.notifier = notifier
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.call_timeout = call_timeout
        self._sleep = sleep
        self._clock = clock

    def _write_audit(self, complaint_id: str, attempt: int, outcome: str, error: str) -> None:
        self.audit_log.append(
            AuditRecord(
                complaint_id=complaint_id,
                attempt=attempt,
                outcome=outcome,
                timestamp=self._clock(),
                error=error,
            )
        )
        log_event(
            complaint_id,
            {"type": "submission_attempt", "attempt": attempt, "outcome": outcome, "error": error},
        )

    async def _audit(self, complaint_id: str, attempt: int, outcome: str, error: str = "") -> None:
        # 감사 로그 저장소(DB)는 동기 I/O 라 이벤트 루프 밖에서 쓴다
        await asyncio.to_thread(self._write_audit, complaint_id, attempt, outcome, error)

    async def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.call_timeout is None:
            return await self.client.send(payload)
        try:
            return await asyncio.wait_for(self.client.send(payload), timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise IntegrationTransient(f"municipal call exceeded {self.call_timeout}s") from e

    async def _wait_before_retry(self, attempt: int) -> None:
        """지수 백오프 대기 (attempt 는 0부터)."""
        wait_time = min(self.backoff_max, self.backoff_base * (2 ** attempt))
        logger.debug(f"[submit] waiting {wait_time:.1f}s before retry")
        await self._sleep(wait_time)

    def _enqueue(self, complaint_id: str, reason: str) -> SubmissionOutcome:
        self.queue.push(complaint_id)
        log_event(complaint_id, {"type": "submission_queued", "reason": reason})
        return SubmissionOutcome.QUEUED

    async def submit(self, report: StructuredReport) -> SubmissionOutcome:
        cid = report.complaint_id
        payload = report.to_payload()
        # 이전 실행(재전송 드라이버 등)에서 이어지는 시도 번호
        offset = len(await asyncio.to_thread(self.audit_log.list_for, cid))

        for i in range(self.max_attempts):
            attempt = offset + i + 1

            if not self.breaker.allow_request():
                logger.warning(f"[submit] circuit open, queueing {cid} without attempting")
                return self._enqueue(cid, "circuit_open")

            try:
                await self._send(payload)
            except IntegrationTransient as e:
                self.breaker.record_failure()
                await self._audit(cid, attempt, AUDIT_TRANSIENT, str(e))
                if i < self.max_attempts - 1:
                    logger.warning(
                        f"[submit] {cid} failed, retrying (attempt {i + 1}/{self.max_attempts}): {e}"
                    )
                    await self._wait_before_retry(i)
                    continue
                logger.error(f"[submit] {cid} failed after all retries, moving to retry queue")
                return self._enqueue(cid, "retries_exhausted")
            except IntegrationPermanent as e:
                # 엔드포인트 자체는 응답했으므로 브레이커 입장에서는 정상
                self.breaker.record_success()
                await self._audit(cid, attempt, AUDIT_PERMANENT, str(e))
                logger.error(f"[submit] {cid} rejected permanently: {e}")
                self.notifier.alert_admin(
                    f"Municipal submission failed for complaint {cid}",
                    f"status={e.status_code} detail={e}",
                )
                return SubmissionOutcome.FAILED
            except asyncio.CancelledError:
                # 결과를 모르는 시도: 실패로 세지 않고 시험 슬롯만 반납
                self.breaker.release_trial()
                await self._audit(cid, attempt, AUDIT_TRANSIENT, "cancelled")
                raise
            except Exception as e:
                self.breaker.record_failure()
                await self._audit(cid, attempt, AUDIT_TRANSIENT, f"{type(e).__name__}: {e}")
                logger.exception(f"[submit] {cid} failed unexpectedly (attempt {attempt})")
                raise

            self.breaker.record_success()
            await self._audit(cid, attempt, AUDIT_SUCCESS)
            logger.info(f"[submit] {cid} delivered (attempt {attempt})")
            return SubmissionOutcome.SUCCESS

        return self._enqueue(cid, "retries_exhausted")
