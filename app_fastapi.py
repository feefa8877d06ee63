# app_fastapi.py
# -*- coding: utf-8 -*-

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import RETRY_DRIVER_ENABLED, RETRY_DRIVER_INTERVAL_SECONDS, USE_DB
from core.logging import logger
from routers import admin, complaint, health
from services.container import PipelineContainer, build_default_container


def create_app(container: Optional[PipelineContainer] = None) -> FastAPI:
    """
    container 를 넘기면 그대로 쓰고 (테스트), 없으면 startup 때 설정값으로 조립한다.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.container is None:
            if USE_DB:
                from db.session import init_db

                init_db()
            app.state.container = build_default_container()

        task = None
        if RETRY_DRIVER_ENABLED and container is None:
            task = asyncio.create_task(
                app.state.container.retry_driver.run_forever(RETRY_DRIVER_INTERVAL_SECONDS)
            )
            logger.info(f"[app] retry driver started (every {RETRY_DRIVER_INTERVAL_SECONDS:.0f}s)")
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    logger.info("[app] retry driver stopped")

    app = FastAPI(
        title="Civic Complaint Pipeline API",
        description="""
주민 민원을 받아 지자체 담당 부서에 넘기는 **민원 처리 파이프라인** API입니다.

- 상위 입력 계층(STT/OCR/텍스트)은 정리된 텍스트와 엔티티/키워드를 이 API로 전송합니다.
- 이 백엔드는
  - 부적절한 내용 필터링 (SafetyGate) 과 24시간 중복 민원 차단
  - 문제 유형 분류 / 긴급도 판단 / 담당 부서 결정
  - 담당자용 5~8줄 요약과 주민 접수 확인 문구 생성
  - 지자체 민원 시스템 전송 (재시도, 서킷 브레이커, 재전송 대기열)
  을 수행합니다.
""",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(complaint.router)
    app.include_router(admin.router)
    return app


app = create_app()
