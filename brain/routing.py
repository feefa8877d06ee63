# brain/routing.py
# -*- coding: utf-8 -*-
"""
문제 유형 → 담당 부서 매핑 (DepartmentRouter).

- DepartmentMapping: 버전이 붙은 설정. 문제 유형별 부서/연락처/에스컬레이션 경로 +
  반드시 존재해야 하는 general(대표 민원 창구) 항목.
- DepartmentDirectory: 현재 매핑을 들고 있다가 reload()/replace() 때
  통째로 교체한다. 읽는 쪽은 항상 한 버전 전체만 본다.
- DepartmentRouter.route(problem_type):
    매핑이 없거나, stale 이거나, 연락처가 비어 있으면 general 로 대체.
    부서명이 빈 문자열로 나가는 일은 없다.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.logging import logger

from .errors import DepartmentConfigError
from .models import ContactInfo, ProblemType, Route


# ---------------------------------------------------------
# 1. 설정 스키마 (pydantic)
# ---------------------------------------------------------

class ContactConfig(BaseModel):
    phone: str = ""
    email: str = ""


class DepartmentEntry(BaseModel):
    department: str
    contact: ContactConfig = Field(default_factory=ContactConfig)
    escalation: List[str] = Field(default_factory=list)
    stale: bool = False

    @property
    def usable(self) -> bool:
        has_contact = bool(self.contact.phone or self.contact.email)
        return bool(self.department.strip()) and has_contact and not self.stale

    def to_route(self, fallback: bool = False) -> Route:
        return Route(
            department=self.department.strip(),
            contact=ContactInfo(phone=self.contact.phone, email=self.contact.email),
            escalation=tuple(self.escalation),
            fallback=fallback,
        )


class DepartmentMapping(BaseModel):
    version: str
    general: DepartmentEntry
    departments: Dict[ProblemType, DepartmentEntry] = Field(default_factory=dict)

    @field_validator("general")
    @classmethod
    def _general_must_be_usable(cls, v: DepartmentEntry) -> DepartmentEntry:
        if not v.department.strip():
            raise ValueError("general department name is empty")
        if not (v.contact.phone or v.contact.email):
            raise ValueError("general department has no contact info")
        return v


def load_mapping(path: Union[str, Path]) -> DepartmentMapping:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return DepartmentMapping.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise DepartmentConfigError(f"invalid department mapping {path}: {e}") from e


# ---------------------------------------------------------
# 2. 현재 매핑 보관 (원자적 교체)
# ---------------------------------------------------------

class DepartmentDirectory:
    def __init__(self, mapping: DepartmentMapping, source: Optional[Path] = None):
        self._mapping = mapping
        self._source = source
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DepartmentDirectory":
        path = Path(path)
        return cls(load_mapping(path), source=path)

    @property
    def current(self) -> DepartmentMapping:
        # 참조 하나만 읽으므로 부분적으로 바뀐 매핑이 보일 일이 없다
        return self._mapping

    def replace(self, mapping: DepartmentMapping) -> None:
        with self._lock:
            old = self._mapping.version
            self._mapping = mapping
        logger.info(f"[routing] department mapping {old} -> {mapping.version}")

    def reload(self, path: Optional[Union[str, Path]] = None) -> DepartmentMapping:
        """설정 파일을 다시 읽어 교체. 파일이 잘못되면 기존 매핑을 유지하고 예외."""
        source = Path(path) if path else self._source
        if source is None:
            raise DepartmentConfigError("no department mapping source configured")
        mapping = load_mapping(source)
        self.replace(mapping)
        self._source = source
        return mapping


# ---------------------------------------------------------
# 3. 라우터
# ---------------------------------------------------------

class DepartmentRouter:
    def __init__(self, directory: DepartmentDirectory):
        self.directory = directory

    def route(self, problem_type: ProblemType) -> Route:
        mapping = self.directory.current
        entry = mapping.departments.get(problem_type)

        if entry is not None and entry.usable:
            return entry.to_route()

        if entry is None:
            logger.info(f"[routing] no mapping for {problem_type.value}, using general contact")
        else:
            logger.warning(
                f"[routing] mapping for {problem_type.value} is stale or has no contact, "
                "using general contact"
            )
        return mapping.general.to_route(fallback=True)

    def general_contact(self) -> Route:
        return self.directory.current.general.to_route(fallback=True)
