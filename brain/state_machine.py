# -*- coding: utf-8 -*-
"""
민원 처리 엔진 (ComplaintStateMachine)

상위 입력 처리 계층이 넘긴 ProcessedInput 하나를 받아
SafetyGate → DedupGate → 분류 → 긴급도 → 부서 라우팅 → 보고서 조립 → 지자체 전송
순서로 진행시키고, 단계가 바뀔 때마다 상태를 저장한다.

- process(input)  : REPORT_GENERATED 까지 진행 + 주민에게 접수 확인/추적 번호 안내
- deliver(id)     : 지자체 전송 (SUBMITTED / QUEUED / FAILED)
- run(input)      : process + deliver
- resume(id)      : 중간에 끊긴 민원을 저장된 상태부터 다시 진행

단계 안에서 예상 못 한 예외가 나면 ERROR 로 보내고,
주민에게는 대체 연락처가 들어간 일반 안내 문구를 돌려준다.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional

from core.logging import log_event, logger

from .classifier import ClassificationEngine
from .dedup import DedupGate
from .errors import ClassificationLowConfidence, InputRejected
from .models import (
    Classification,
    Complaint,
    ComplaintStatus,
    ProblemType,
    ProcessedInput,
    Route,
    SafetyDecision,
    StructuredReport,
    SubmissionOutcome,
    UrgencyAssessment,
    UrgencyLevel,
)
from .routing import DepartmentRouter
from .safety import SafetyGate
from .stores import ComplaintRepository, NotificationSink
from .submitter import MunicipalSubmitter
from .summarizer import ReportComposer
from .urgency import UrgencyAssessor
from .utils_text import extract_keywords

GUIDANCE_SAFETY = (
    "We could not accept this report because parts of it do not meet the guidelines "
    "for civic reports. Please describe the problem, where it is and since when, "
    "without offensive or unrelated content, and submit it again."
)
GUIDANCE_EMPTY = (
    "We could not find a description of the problem in your report. "
    "Please tell us what is wrong and where, and submit it again."
)
GUIDANCE_DUPLICATE = (
    "You already reported this issue recently (reference {original}). "
    "There is no need to submit it again; the earlier report is being handled."
)
GUIDANCE_PAUSED = "Your report has been saved and will be processed shortly."
GENERIC_ERROR = (
    "Sorry, we could not process your report right now. "
    "Please contact {department}{contact} so we can help you directly."
)

URGENCY_FALLBACK_REASON = "Automatic urgency assessment unavailable; default priority applied"

REJECT_SAFETY = "safety"
REJECT_EMPTY = "empty"
REJECT_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class PipelineResult:
    """주민 쪽으로 돌려주는 결과. (상태는 complaint.status 로 확인)"""
    complaint: Complaint
    message: str
    tracking_id: Optional[str] = None


class ComplaintStateMachine:
    def __init__(
        self,
        repository: ComplaintRepository,
        safety: SafetyGate,
        dedup: DedupGate,
        classifier: ClassificationEngine,
        urgency: UrgencyAssessor,
        router: DepartmentRouter,
        composer: ReportComposer,
        submitter: MunicipalSubmitter,
        notifier: NotificationSink,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repository = repository
        self.safety = safety
        self.dedup = dedup
        self.classifier = classifier
        self.urgency = urgency
        self.router = router
        self.composer = composer
        self.submitter = submitter
        self.notifier = notifier
        self._clock = clock

    # -------------------------------------------------------------
    # 공통 헬퍼
    # -------------------------------------------------------------
    def _advance(self, complaint: Complaint, target: ComplaintStatus, **extra) -> None:
        previous = complaint.status
        complaint.transition(target, self._clock())
        self.repository.save(complaint)
        log_event(
            complaint.id,
            {"type": "transition", "from": previous.value, "to": target.value, **extra},
        )

    def _filter(self, complaint: Complaint, rejected: InputRejected) -> PipelineResult:
        if rejected.reason == REJECT_DUPLICATE:
            complaint.duplicate_of = rejected.original_id
            message = GUIDANCE_DUPLICATE.format(original=rejected.original_id)
        elif rejected.reason == REJECT_EMPTY:
            message = GUIDANCE_EMPTY
        else:
            message = GUIDANCE_SAFETY
        self._advance(
            complaint,
            ComplaintStatus.FILTERED,
            reason=rejected.reason,
            original_id=rejected.original_id,
            score=complaint.safety_score,
        )
        self.notifier.notify_citizen(complaint, message)
        return PipelineResult(complaint=complaint, message=message)

    def _alternative_contact(self) -> Route:
        return self.router.general_contact()

    def _fail(self, complaint: Complaint, stage: str, exc: BaseException) -> PipelineResult:
        logger.error(f"[pipeline] {complaint.id} failed in stage '{stage}': {exc}", exc_info=exc)
        complaint.error_detail = f"{stage}: {exc}"
        if not complaint.is_terminal and complaint.status != ComplaintStatus.QUEUED:
            complaint.transition(ComplaintStatus.ERROR, self._clock())
        self.repository.save(complaint)
        log_event(
            complaint.id,
            {"type": "error", "stage": stage, "error": repr(exc), "status": complaint.status.value},
        )

        try:
            contact = self._alternative_contact()
            details = " / ".join(v for v in (contact.contact.phone, contact.contact.email) if v)
            message = GENERIC_ERROR.format(
                department=contact.department,
                contact=f" ({details})" if details else "",
            )
        except Exception:
            logger.exception("[pipeline] general contact lookup failed")
            message = GENERIC_ERROR.format(department="the city service center", contact="")

        try:
            self.notifier.notify_citizen(complaint, message)
        except Exception:
            logger.exception(f"[pipeline] could not notify citizen about error in {complaint.id}")
        return PipelineResult(complaint=complaint, message=message)

    @staticmethod
    def _keywords_for(complaint: Complaint) -> List[str]:
        """상위 추출기가 키워드를 안 줬으면 처리된 원문에서 직접 뽑는다."""
        if complaint.keywords:
            return list(complaint.keywords)
        return extract_keywords(complaint.processed_text)

    # -------------------------------------------------------------
    # 1) 접수
    # -------------------------------------------------------------
    def receive(self, data: ProcessedInput) -> Complaint:
        complaint = Complaint.from_input(data)
        self.repository.save(complaint)
        log_event(
            complaint.id,
            {"type": "received", "input_type": complaint.input_type.value, "text": data.text_content},
        )
        return complaint

    # -------------------------------------------------------------
    # 2) 단계별 처리
    # -------------------------------------------------------------
    def _screen(self, complaint: Complaint) -> None:
        """SafetyGate + DedupGate. 걸리면 InputRejected."""
        verdict = self.safety.evaluate(complaint.processed_text)
        complaint.safety_score = verdict.score
        complaint.safety_reasons = list(verdict.reasons)
        log_event(
            complaint.id,
            {
                "type": "safety",
                "score": verdict.score,
                "decision": verdict.decision.value,
                "reasons": list(verdict.reasons),
            },
        )

        if verdict.decision == SafetyDecision.REJECT:
            logger.info(f"[safety] {complaint.id} rejected (score={verdict.score}): {verdict.reasons}")
            raise InputRejected(REJECT_SAFETY)

        if not complaint.processed_text.strip():
            raise InputRejected(REJECT_EMPTY)

        if verdict.decision == SafetyDecision.FLAG:
            complaint.needs_review = True
            logger.info(f"[safety] {complaint.id} flagged for review (score={verdict.score})")

        dup = self.dedup.check_complaint(complaint)
        if dup.is_duplicate:
            logger.info(f"[dedup] {complaint.id} is a duplicate of {dup.original_id}")
            raise InputRejected(REJECT_DUPLICATE, dup.original_id)

        self.repository.save(complaint)

    def _classify(self, complaint: Complaint, keywords: List[str]) -> Classification:
        try:
            result = self.classifier.classify(list(complaint.entities), keywords)
        except Exception:
            logger.exception(f"[classify] {complaint.id} classification failed, using GENERAL_CIVIC")
            return Classification(
                primary=ProblemType.GENERAL_CIVIC, secondary=(), confidence=0.0, low_confidence=True
            )

        if result.low_confidence:
            logger.warning(f"[classify] {complaint.id}: {ClassificationLowConfidence(result.confidence)}")
        return result

    def _assess(self, complaint: Complaint, problem_type: ProblemType, keywords: List[str]) -> UrgencyAssessment:
        try:
            return self.urgency.assess(list(complaint.entities), problem_type, keywords)
        except Exception:
            logger.exception(f"[urgency] {complaint.id} assessment failed, using MEDIUM")
            complaint.needs_review = True
            return UrgencyAssessment(
                level=UrgencyLevel.MEDIUM, reasoning=(URGENCY_FALLBACK_REASON,), score=0
            )

    def _analyze(self, complaint: Complaint) -> None:
        keywords = self._keywords_for(complaint)

        classification = self._classify(complaint, keywords)
        complaint.problem_type = classification.primary
        complaint.secondary_types = list(classification.secondary)
        complaint.classification_confidence = classification.confidence

        assessment = self._assess(complaint, classification.primary, keywords)
        complaint.urgency_level = assessment.level
        complaint.urgency_reasoning = list(assessment.reasoning)
        complaint.analyzed_at = self._clock()

        self._advance(
            complaint,
            ComplaintStatus.ANALYZED,
            problem_type=classification.primary.value,
            confidence=classification.confidence,
            urgency=assessment.level.value,
            reasoning=list(assessment.reasoning),
        )

    def _route(self, complaint: Complaint) -> Route:
        problem_type = complaint.problem_type or ProblemType.GENERAL_CIVIC
        try:
            return self.router.route(problem_type)
        except Exception:
            logger.exception(f"[routing] {complaint.id} routing failed, using general contact")
            return self.router.general_contact()

    def _compose(self, complaint: Complaint) -> StructuredReport:
        route = self._route(complaint)
        report = self.composer.compose(complaint, route)

        complaint.suggested_department = report.suggested_department
        complaint.official_summary = report.official_summary
        complaint.citizen_confirmation = report.citizen_confirmation
        complaint.tracking_id = report.tracking_id
        complaint.report = report

        self._advance(
            complaint,
            ComplaintStatus.REPORT_GENERATED,
            department=report.suggested_department,
            tracking_id=report.tracking_id,
            simplified=report.simplified,
        )
        # 지자체 전송 결과와 무관하게 주민에게는 바로 접수 확인
        self.notifier.notify_citizen(complaint, report.citizen_confirmation)
        return report

    def _drive(
        self,
        complaint: Complaint,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> PipelineResult:
        """저장된 상태에서 REPORT_GENERATED 까지 진행."""

        def _stop() -> bool:
            return should_continue is not None and not should_continue()

        stage = "intake"
        try:
            if complaint.status == ComplaintStatus.RECEIVED:
                complaint.processed_text = " ".join(complaint.original_text.split())
                self._advance(complaint, ComplaintStatus.PROCESSING)

            if complaint.status == ComplaintStatus.PROCESSING:
                stage = "screening"
                self._screen(complaint)
                if _stop():
                    return PipelineResult(complaint=complaint, message=GUIDANCE_PAUSED)

                stage = "analysis"
                self._analyze(complaint)
                if _stop():
                    return PipelineResult(complaint=complaint, message=GUIDANCE_PAUSED)

            if complaint.status == ComplaintStatus.ANALYZED:
                stage = "report"
                self._compose(complaint)

        except InputRejected as rejected:
            return self._filter(complaint, rejected)
        except Exception as e:
            return self._fail(complaint, stage, e)

        return PipelineResult(
            complaint=complaint,
            message=complaint.citizen_confirmation,
            tracking_id=complaint.tracking_id,
        )

    def process(
        self,
        data: ProcessedInput,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> PipelineResult:
        complaint = self.receive(data)
        return self._drive(complaint, should_continue)

    # -------------------------------------------------------------
    # 3) 지자체 전송
    # -------------------------------------------------------------
    def _report_for(self, complaint: Complaint) -> StructuredReport:
        if complaint.report is not None:
            return complaint.report
        # 저장소에서 다시 읽은 경우: 같은 tracking id 로 보고서를 다시 조립
        report = self.composer.compose(complaint, self._route(complaint))
        complaint.report = report
        return report

    async def deliver(self, complaint_id: str) -> Optional[Complaint]:
        # 저장소(DB) 접근은 동기 I/O 이므로 스레드에서 실행
        complaint = await asyncio.to_thread(self.repository.get, complaint_id)
        if complaint is None:
            logger.warning(f"[deliver] unknown complaint {complaint_id}")
            return None
        if complaint.status not in (ComplaintStatus.REPORT_GENERATED, ComplaintStatus.QUEUED):
            logger.info(f"[deliver] {complaint_id} is {complaint.status.value}, nothing to deliver")
            return complaint

        try:
            report = self._report_for(complaint)
            outcome = await self.submitter.submit(report)
        except Exception as e:
            if complaint.status == ComplaintStatus.QUEUED:
                # 재전송 대상은 그대로 두고 다음 주기에 다시 시도
                logger.exception(f"[deliver] retry of {complaint_id} failed unexpectedly")
                self.submitter.queue.push(complaint_id)
                return complaint
            failed = await asyncio.to_thread(self._fail, complaint, "submission", e)
            return failed.complaint

        if outcome == SubmissionOutcome.SUCCESS:
            complaint.submitted_at = self._clock()
            await asyncio.to_thread(self._advance, complaint, ComplaintStatus.SUBMITTED)
        elif outcome == SubmissionOutcome.FAILED:
            await asyncio.to_thread(self._advance, complaint, ComplaintStatus.FAILED)
        elif complaint.status != ComplaintStatus.QUEUED:
            await asyncio.to_thread(self._advance, complaint, ComplaintStatus.QUEUED)
        return complaint

    async def run(
        self,
        data: ProcessedInput,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> PipelineResult:
        result = await asyncio.to_thread(self.process, data, should_continue)
        if result.complaint.status != ComplaintStatus.REPORT_GENERATED:
            return result
        delivered = await self.deliver(result.complaint.id)
        return replace(result, complaint=delivered or result.complaint)

    async def resume(
        self,
        complaint_id: str,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> Optional[PipelineResult]:
        complaint = await asyncio.to_thread(self.repository.get, complaint_id)
        if complaint is None:
            return None
        if complaint.status in (
            ComplaintStatus.RECEIVED,
            ComplaintStatus.PROCESSING,
            ComplaintStatus.ANALYZED,
        ):
            result = await asyncio.to_thread(self._drive, complaint, should_continue)
            if result.complaint.status != ComplaintStatus.REPORT_GENERATED:
                return result
            complaint = result.complaint
        if complaint.status == ComplaintStatus.REPORT_GENERATED:
            delivered = await self.deliver(complaint_id)
            complaint = delivered or complaint
        return PipelineResult(
            complaint=complaint,
            message=complaint.citizen_confirmation,
            tracking_id=complaint.tracking_id,
        )

