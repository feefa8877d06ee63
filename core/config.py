# -*- coding: utf-8 -*-

import os
from pathlib import Path

from dotenv import load_dotenv

# .env 로드 (가장 먼저 실행)
load_dotenv()

# --------------------------------
# 경로 / 로그 디렉터리 설정
# --------------------------------

# 프로젝트 루트 디렉토리
BASE_DIR = Path(__file__).resolve().parent.parent

# 로그 디렉터리 (complaint 별 JSONL 이벤트 로그)
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "data" / "logs")))
LOG_DIR.mkdir(parents=True, exist_ok=True)

# 터미널 로그 레벨 / 민원별 JSONL 이벤트 로그 on/off
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
EVENT_LOG_ENABLED = os.getenv("EVENT_LOG_ENABLED", "true").lower() == "true"

# 부서 매핑 설정 파일 (hot-reload 대상)
DEPARTMENT_CONFIG_PATH = Path(
    os.getenv("DEPARTMENT_CONFIG_PATH", str(BASE_DIR / "config" / "departments.json"))
)

# --------------------------------
# 지자체 민원 시스템 연동 설정
# --------------------------------

MUNICIPAL_API_URL = os.getenv("MUNICIPAL_API_URL", "http://localhost:9000/api/reports")
MUNICIPAL_API_TOKEN = os.getenv("MUNICIPAL_API_TOKEN", "")
MUNICIPAL_TIMEOUT_SECONDS = float(os.getenv("MUNICIPAL_TIMEOUT_SECONDS", "10"))

# 재시도 / 지수 백오프
SUBMIT_MAX_ATTEMPTS = int(os.getenv("SUBMIT_MAX_ATTEMPTS", "3"))
SUBMIT_BACKOFF_BASE = float(os.getenv("SUBMIT_BACKOFF_BASE", "1.0"))
SUBMIT_BACKOFF_MAX = float(os.getenv("SUBMIT_BACKOFF_MAX", "30.0"))

# 서킷 브레이커
BREAKER_FAILURE_THRESHOLD = int(os.getenv("BREAKER_FAILURE_THRESHOLD", "3"))
BREAKER_COOLDOWN_SECONDS = float(os.getenv("BREAKER_COOLDOWN_SECONDS", "300"))

# 백그라운드 재전송 드라이버 (QUEUED -> SUBMITTED/FAILED)
RETRY_DRIVER_ENABLED = os.getenv("RETRY_DRIVER_ENABLED", "true").lower() == "true"
RETRY_DRIVER_INTERVAL_SECONDS = float(os.getenv("RETRY_DRIVER_INTERVAL_SECONDS", "60"))

# --------------------------------
# 중복 민원 판정 윈도우
# --------------------------------

DEDUP_WINDOW_HOURS = float(os.getenv("DEDUP_WINDOW_HOURS", "24"))
DEDUP_SIMILARITY_THRESHOLD = float(os.getenv("DEDUP_SIMILARITY_THRESHOLD", "0.85"))

# 로컬/데모 모드에서 DB 대신 메모리 저장소를 쓰는 플래그
USE_DB = os.getenv("USE_DB", "true").lower() == "true"
