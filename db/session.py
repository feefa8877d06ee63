# db/session.py
# -*- coding: utf-8 -*-
"""
SQLAlchemy 세션/엔진 설정 모듈

- 기본: .env 에 MySQL 접속 정보가 모두 있으면 MySQL 사용
- fallback: MySQL 정보가 없으면 자동으로 SQLite 파일(civic_dev.db) 사용
- USE_DB 가 false 면 앱은 메모리 저장소를 쓰고, 여기 엔진은 만들어지기만 한다.
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

# ---------------------------------------------------------
# 1) 환경 변수 읽기
# ---------------------------------------------------------

load_dotenv()

DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_NAME = os.getenv("DB_NAME")

# 로그 확인용 / 디버깅용
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

# ---------------------------------------------------------
# 2) MySQL or SQLite Fallback 결정
# ---------------------------------------------------------

if DB_HOST and DB_USER and DB_PASSWORD and DB_NAME:
    DB_BACKEND = "mysql"
    DATABASE_URL = (
        f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}?charset=utf8mb4"
    )
else:
    DB_BACKEND = "sqlite"
    SQLITE_PATH = os.path.abspath(os.getenv("SQLITE_PATH", "./civic_dev.db"))
    DATABASE_URL = f"sqlite:///{SQLITE_PATH}"

# ---------------------------------------------------------
# 3) SQLAlchemy Engine / SessionLocal / Base 생성
# ---------------------------------------------------------


def make_engine(url: str) -> Engine:
    """URL 에 맞는 옵션으로 엔진 생성 (테스트에서는 sqlite 메모리 DB 로 호출)."""
    kwargs: Dict[str, Any] = {"echo": DB_ECHO, "future": True}
    if url.startswith("sqlite"):
        # FastAPI 스레드풀 + 백그라운드 재전송 태스크에서 같이 쓰기 때문에 필요
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_recycle"] = 3600
        kwargs["pool_pre_ping"] = True
    return create_engine(url, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, class_=Session)


engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)

# db/models/* 가 이 Base 를 import 해서 사용
Base = declarative_base()


def init_db(bind: Engine = engine) -> None:
    """complaints / audit_records 테이블 생성 (이미 있으면 그대로)."""
    # 테이블 정의가 Base.metadata 에 등록되도록 import
    from db.models import audit_record, complaint  # noqa: F401

    Base.metadata.create_all(bind=bind)

