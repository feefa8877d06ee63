from __future__ import annotations

import pytest

from brain.models import Entity, ProblemType, UrgencyLevel
from brain.urgency import (
    REASON_LOCATION,
    REASON_OVERRIDE,
    REASON_SAFETY,
    UrgencyAssessor,
    assess,
    find_high_impact_location,
)


def test_flooding_on_main_street_is_high():
    result = assess([], ProblemType.WATER_SUPPLY, ["flooding", "main street"])

    assert result.score == 6
    assert result.level == UrgencyLevel.HIGH
    assert REASON_SAFETY in result.reasoning
    assert REASON_LOCATION in result.reasoning


def test_faded_paint_is_low():
    result = assess([], ProblemType.ROAD_DAMAGE, ["faded paint"])

    assert result.score == 1
    assert result.level == UrgencyLevel.LOW
    assert result.reasoning == ("Road damage issues carry base priority 1",)


def test_zero_score_has_no_reasoning():
    result = assess([], ProblemType.GENERAL_CIVIC, ["bench"])

    assert result.score == 0
    assert result.level == UrgencyLevel.LOW
    assert result.reasoning == ()


@pytest.mark.parametrize("problem_type", [ProblemType.TRAFFIC_SAFETY, ProblemType.WATER_SUPPLY])
def test_safety_critical_on_critical_service_is_always_high(problem_type):
    result = UrgencyAssessor().assess([], problem_type, ["dangerous"])

    assert result.level == UrgencyLevel.HIGH


def test_override_is_recorded_when_threshold_not_reached(monkeypatch):
    import brain.urgency as urgency

    monkeypatch.setitem(urgency.BASE_SCORES, ProblemType.TRAFFIC_SAFETY, 0)
    result = assess([], ProblemType.TRAFFIC_SAFETY, ["hazard"])

    assert result.score == 3
    assert result.level == UrgencyLevel.HIGH
    assert REASON_OVERRIDE in result.reasoning


def test_safety_critical_general_issue_is_medium():
    result = assess([], ProblemType.GENERAL_CIVIC, ["broken"])

    assert result.score == 3
    assert result.level == UrgencyLevel.MEDIUM


def test_location_entity_is_checked_before_keywords():
    entities = [Entity("location", "outside Lincoln Elementary School"), Entity("issue", "pothole")]

    assert find_high_impact_location(entities, []) == "school_zone"
    assert find_high_impact_location([Entity("issue", "school")], []) is None
    assert find_high_impact_location([], ["near the hospital"]) == "hospital_zone"


def test_medium_band():
    result = assess([Entity("location", "Oak Avenue")], ProblemType.STREET_LIGHTS, ["flickering"])

    # base 1 + arterial 1
    assert result.score == 2
    assert result.level == UrgencyLevel.MEDIUM
