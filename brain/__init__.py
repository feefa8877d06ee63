# -*- coding: utf-8 -*-
"""
brain 패키지

주민 민원을 지자체 담당 부서에 넘기기까지의 "민원 처리 엔진" 핵심 로직 모음입니다.

외부(예: app_fastapi.py, main.py)에서는 보통 ComplaintStateMachine 만 직접 사용합니다.
(조립은 services/container.py 의 build_container)

세부 로직은 다음 모듈로 나뉘어 있습니다.

- models          : Complaint / 상태 전이표 / 단계별 결과 dataclass
- errors          : 파이프라인 예외 계층
- utils_text      : 텍스트 정규화, 토큰/키워드 추출, 유사도
- safety          : 욕설·비방·무관·정치·스팸 감점 (SafetyGate)
- dedup           : 24시간 중복 민원 판정 (DedupGate)
- classifier      : 문제 유형 분류 (ClassificationEngine)
- urgency         : 긴급도 점수 (UrgencyAssessor)
- routing         : 문제 유형 → 담당 부서 (DepartmentRouter)
- summarizer      : 담당자용 요약 + 주민 접수 확인 (ReportComposer)
- staff_report_agent : 보고서 텍스트 양식
- submitter       : 지자체 전송, 서킷 브레이커, 재전송 대기열
- state_machine   : 단계 진행/상태 저장 (ComplaintStateMachine)
- retry_driver    : QUEUED 민원 백그라운드 재전송
"""

from .state_machine import ComplaintStateMachine, PipelineResult

__all__ = ["ComplaintStateMachine", "PipelineResult"]
