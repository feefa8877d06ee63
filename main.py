# -*- coding: utf-8 -*-
"""
main.py

민원 처리 파이프라인 콘솔 데모.

- 콘솔에서 민원 문장을 한 줄 입력받아
  SafetyGate → 중복 검사 → 분류 → 긴급도 → 부서 → 보고서 → 지자체 전송까지 실행
- 저장소는 메모리, 지자체 엔드포인트는 httpx.MockTransport 로 흉내낸다.
- "fail" 모드로 띄우면 지자체 쪽이 503 을 돌려주는 상황(재시도 → QUEUED)을 볼 수 있다.

실제 서비스는 app_fastapi.py (uvicorn app_fastapi:app) 를 사용.
"""

import asyncio
import json
import sys
import uuid
from datetime import datetime

import httpx

from brain.models import ComplaintStatus, InputMetadata, InputType, ProcessedInput
from brain.staff_report_agent import build_staff_report_text
from services.container import build_container


def _stub_transport(fail: bool) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if fail:
            return httpx.Response(503, json={"error": "maintenance"})
        body = json.loads(request.content)
        return httpx.Response(201, json={"accepted": body["trackingId"]})

    return httpx.MockTransport(handler)


def run_text_mode(fail: bool = False):
    print("\n[데모] 민원 파이프라인 (exit로 종료)")
    container = build_container(transport=_stub_transport(fail))
    # 데모에서는 백오프 대기 없이 바로 재시도
    container.submitter.backoff_base = 0.0

    while True:
        try:
            text = input("\n민원 > ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n종료합니다.")
            break

        if text.lower() in ("exit", "quit"):
            print("종료합니다.")
            break

        data = ProcessedInput(
            id=str(uuid.uuid4()),
            text_content=text,
            input_type=InputType.TEXT,
            metadata=InputMetadata(timestamp=datetime.utcnow(), citizen_id="console"),
        )
        result = asyncio.run(container.machine.run(data))
        c = result.complaint

        print("\n[상태]", c.status.value)
        print("[주민 안내]", result.message)
        if c.problem_type:
            print("[분류]", c.problem_type.value, f"(confidence={c.classification_confidence})")
            print("[긴급도]", c.urgency_level.value if c.urgency_level else "-", "|", "; ".join(c.urgency_reasoning))
        if c.report is not None:
            print(build_staff_report_text(c.report))
        if c.status == ComplaintStatus.QUEUED:
            print(f"[재전송 대기] {len(container.submitter.queue)}건")

        attempts = container.audit_log.list_for(c.id)
        print("FE:" + json.dumps(
            {
                "complaint_id": c.id,
                "status": c.status.value,
                "tracking_id": c.tracking_id,
                "attempts": [a.outcome for a in attempts],
            },
            ensure_ascii=False,
        ))


if __name__ == "__main__":
    run_text_mode(fail=len(sys.argv) > 1 and sys.argv[1] == "fail")
