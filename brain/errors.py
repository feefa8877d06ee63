# -*- coding: utf-8 -*-
"""
brain.errors

민원 파이프라인 예외 계층.

- InputRejected              : 안전성/중복 필터에 걸려 FILTERED 처리 (주민에게는 안내 문구)
- ClassificationLowConfidence: 분류 신뢰도 부족 (치명적 아님, GENERAL_CIVIC 로 대체)
- IntegrationTransient       : 지자체 연동 일시 오류 (재시도 대상)
- IntegrationPermanent       : 인증/형식 오류 등 재시도해도 안 되는 오류
- InternalPipelineError      : 단계 내부 예기치 못한 오류 → complaint ERROR
"""

from __future__ import annotations

from typing import Optional


class ComplaintPipelineError(Exception):
    """파이프라인 예외 공통 부모."""


class InputRejected(ComplaintPipelineError):
    def __init__(self, reason: str, original_id: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.original_id = original_id


class ClassificationLowConfidence(ComplaintPipelineError):
    def __init__(self, confidence: float):
        super().__init__(f"classification confidence too low: {confidence:.2f}")
        self.confidence = confidence


class IntegrationError(ComplaintPipelineError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class IntegrationTransient(IntegrationError):
    pass


class IntegrationPermanent(IntegrationError):
    pass


class InternalPipelineError(ComplaintPipelineError):
    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage


class InvalidTransition(InternalPipelineError):
    def __init__(self, complaint_id: str, current: str, target: str):
        super().__init__(
            "state_machine",
            f"complaint {complaint_id}: {current} -> {target} is not allowed",
        )
        self.current = current
        self.target = target


class DepartmentConfigError(ComplaintPipelineError):
    """부서 매핑 설정 파일이 잘못되었거나 general 연락처가 없을 때."""
