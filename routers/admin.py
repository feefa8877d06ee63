# routers/admin.py
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from brain.errors import DepartmentConfigError
from brain.routing import DepartmentMapping
from routers.complaint import get_container
from services.container import PipelineContainer

router = APIRouter(prefix="/admin", tags=["admin"])


class IntegrationStatus(BaseModel):
    breaker_state: str
    consecutive_failures: int
    cooldown_remaining_seconds: float
    queued: int


class DrainResult(BaseModel):
    submitted: List[str]
    failed: List[str]
    queued: List[str]
    skipped: List[str]


# ------------------------------------------------------------
# 부서 매핑
# ------------------------------------------------------------

@router.get("/departments", response_model=DepartmentMapping, summary="현재 부서 매핑")
def get_departments(container: PipelineContainer = Depends(get_container)):
    return container.directory.current


@router.post("/departments/reload", summary="부서 매핑 다시 읽기")
def reload_departments(container: PipelineContainer = Depends(get_container)) -> Dict[str, str]:
    """설정 파일이 잘못되면 기존 매핑을 그대로 쓰고 422 를 돌려준다."""
    try:
        mapping = container.directory.reload()
    except DepartmentConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"status": "ok", "version": mapping.version}


# ------------------------------------------------------------
# 지자체 연동 상태 / 재전송
# ------------------------------------------------------------

@router.get("/integration/status", response_model=IntegrationStatus, summary="지자체 연동 상태")
def integration_status(container: PipelineContainer = Depends(get_container)):
    snap = container.submitter.breaker.snapshot()
    return IntegrationStatus(
        breaker_state=snap["state"],
        consecutive_failures=snap["consecutive_failures"],
        cooldown_remaining_seconds=snap["cooldown_remaining_seconds"],
        queued=len(container.submitter.queue),
    )


@router.post("/retry-queue/drain", response_model=DrainResult, summary="재전송 대기열 한 번 처리")
async def drain_retry_queue(container: PipelineContainer = Depends(get_container)):
    return DrainResult(**await container.retry_driver.drain_once())
