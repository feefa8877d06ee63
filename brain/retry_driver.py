# -*- coding: utf-8 -*-
"""
brain.retry_driver

QUEUED 민원을 주기적으로 다시 지자체로 보내는 백그라운드 드라이버.

- drain_once(): 재전송 대기열을 한 번 비우면서 민원별로 deliver 호출
    QUEUED → SUBMITTED / FAILED, 또는 그대로 QUEUED (submitter 가 다시 대기열에 넣음)
- run_forever(interval): FastAPI lifespan 에서 asyncio task 로 돌린다.
- 서킷이 OPEN 이면 이번 주기는 건너뛴다 (시도해 봐야 바로 QUEUED).
"""

from __future__ import annotations

import asyncio
from typing import Dict, List

from core.logging import logger

from .models import ComplaintStatus
from .state_machine import ComplaintStateMachine
from .submitter import BreakerState


class RetryDriver:
    def __init__(self, machine: ComplaintStateMachine):
        self.machine = machine

    @property
    def queue(self):
        return self.machine.submitter.queue

    def recover_queue(self) -> int:
        """재시작 후 저장소의 QUEUED 민원을 대기열에 다시 올린다."""
        restored = 0
        for complaint in self.machine.repository.list_by_status(ComplaintStatus.QUEUED):
            if complaint.id not in self.queue:
                self.queue.push(complaint.id)
                restored += 1
        if restored:
            logger.info(f"[retry] restored {restored} queued complaint(s) from storage")
        return restored

    async def drain_once(self) -> Dict[str, List[str]]:
        results: Dict[str, List[str]] = {"submitted": [], "failed": [], "queued": [], "skipped": []}

        breaker = self.machine.submitter.breaker.snapshot()
        if breaker["state"] == BreakerState.OPEN.value and breaker["cooldown_remaining_seconds"] > 0:
            logger.info(f"[retry] circuit open, skipping this pass ({len(self.queue)} queued)")
            return results

        for complaint_id in self.queue.pop_all():
            complaint = await self.machine.deliver(complaint_id)
            if complaint is None:
                results["skipped"].append(complaint_id)
            elif complaint.status == ComplaintStatus.SUBMITTED:
                results["submitted"].append(complaint_id)
            elif complaint.status == ComplaintStatus.FAILED:
                results["failed"].append(complaint_id)
            elif complaint.status == ComplaintStatus.QUEUED:
                results["queued"].append(complaint_id)
            else:
                results["skipped"].append(complaint_id)

        if any(results.values()):
            logger.info(
                "[retry] pass done: "
                + ", ".join(f"{k}={len(v)}" for k, v in results.items())
            )
        return results

    async def run_forever(self, interval_seconds: float) -> None:
        await asyncio.to_thread(self.recover_queue)
        while True:
            try:
                await self.drain_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[retry] retry pass failed")
            await asyncio.sleep(interval_seconds)
