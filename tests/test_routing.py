from __future__ import annotations

import json

import pytest

from brain.errors import DepartmentConfigError
from brain.models import ProblemType
from brain.routing import DepartmentDirectory, DepartmentRouter, load_mapping


def test_configured_type_routes_to_its_department(directory):
    route = DepartmentRouter(directory).route(ProblemType.ROAD_DAMAGE)

    assert route.department == "Department of Public Works - Roads"
    assert route.contact.phone == "555-0101"
    assert route.escalation == ("Roads Supervisor", "Public Works Director")
    assert route.fallback is False


@pytest.mark.parametrize(
    "problem_type",
    [
        ProblemType.GARBAGE_SANITATION,  # 매핑 없음
        ProblemType.STREET_LIGHTS,  # 연락처 없음
        ProblemType.TRAFFIC_SAFETY,  # stale
        ProblemType.GENERAL_CIVIC,
    ],
)
def test_unusable_entries_fall_back_to_general(directory, problem_type):
    route = DepartmentRouter(directory).route(problem_type)

    assert route.department == "Citizen Service Center"
    assert route.contact.phone == "311"
    assert route.fallback is True


def test_every_problem_type_gets_a_department(directory):
    router = DepartmentRouter(directory)

    for problem_type in ProblemType:
        assert router.route(problem_type).department.strip()


def test_reload_swaps_mapping(directory, mapping_file):
    router = DepartmentRouter(directory)
    data = json.loads(mapping_file.read_text(encoding="utf-8"))
    data["version"] = "test-2"
    data["departments"]["GARBAGE_SANITATION"] = {
        "department": "Sanitation Department",
        "contact": {"email": "sanitation@city.test"},
    }
    mapping_file.write_text(json.dumps(data), encoding="utf-8")

    mapping = directory.reload()

    assert mapping.version == "test-2"
    assert router.route(ProblemType.GARBAGE_SANITATION).department == "Sanitation Department"


def test_invalid_reload_keeps_previous_mapping(directory, mapping_file):
    mapping_file.write_text('{"version": "broken", "general": {"department": "", "contact": {}}}', encoding="utf-8")

    with pytest.raises(DepartmentConfigError):
        directory.reload()

    assert directory.current.version == "test-1"


def test_general_entry_is_required(tmp_path):
    path = tmp_path / "departments.json"
    path.write_text(json.dumps({"version": "x", "departments": {}}), encoding="utf-8")

    with pytest.raises(DepartmentConfigError):
        load_mapping(path)


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(DepartmentConfigError):
        DepartmentDirectory.from_file(tmp_path / "nope.json")


def test_bundled_mapping_loads():
    from core.config import DEPARTMENT_CONFIG_PATH

    mapping = load_mapping(DEPARTMENT_CONFIG_PATH)

    assert mapping.general.department
    assert set(mapping.departments) == {
        ProblemType.GARBAGE_SANITATION,
        ProblemType.ROAD_DAMAGE,
        ProblemType.STREET_LIGHTS,
        ProblemType.WATER_SUPPLY,
        ProblemType.TRAFFIC_SAFETY,
    }
